"""Creator -> checkout -> confirmation -> public page, through the HTTP surface only."""

from goalpost.services.live import EVENT_CHANGED


def test_trip_goal_fills_up_milestone_by_milestone(client, socket_client, fake_stripe, post_webhook, checkout_event):
    created = client.post(
        "/api/goals",
        json={
            "name": "Trip",
            "target_amount": "1000",
            "payout_account_id": "acct_test_creator",
            "milestones": [{"name": "Flights", "target_amount": "600"}, {"name": "Hotel", "target_amount": "400"}],
        },
    ).get_json()
    goal_id = created["goal"]["id"]

    socket_client.emit("subscribe", {"goal_id": goal_id})
    socket_client.get_received()

    # donor starts a checkout; nothing is counted until the provider confirms
    checkout = client.post("/payments/checkout", json={"goal_id": goal_id, "amount": "700", "donor_name": "Sam"})
    assert checkout.status_code == 200
    assert client.get(f"/api/goals/{goal_id}").get_json()["progress"]["current_amount"] == "0.00"

    post_webhook(checkout_event(goal_id, 70000, event_id="evt_700", payment_intent="pi_700", donor_name="Sam"))

    progress = client.get(f"/api/goals/{goal_id}").get_json()["progress"]
    assert progress["current_amount"] == "700.00"
    assert progress["progress_percent"] == 70.0
    assert [(m["name"], m["reached"]) for m in progress["milestones"]] == [("Flights", True), ("Hotel", False)]
    assert progress["next_milestone"]["gap"] == "300.00"

    post_webhook(checkout_event(goal_id, 30000, event_id="evt_300", payment_intent="pi_300"))

    snap = client.get(f"/api/goals/{goal_id}").get_json()
    assert snap["progress"]["progress_percent"] == 100.0
    assert snap["progress"]["is_complete"] is True
    assert all(m["reached"] for m in snap["progress"]["milestones"])
    assert [d["donor_name"] for d in snap["donations"]] == ["Anonymous", "Sam"]

    pushed = [pkt["args"][0] for pkt in socket_client.get_received() if pkt["name"] == EVENT_CHANGED]
    assert [p["seq"] for p in pushed] == [1, 2]
    assert pushed[-1]["state"]["progress"] == snap["progress"]
