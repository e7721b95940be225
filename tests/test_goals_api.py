def _create(client, **overrides):
    body = {
        "name": "Spring tour",
        "description": "Bus + hotel",
        "target_amount": "1000",
        "payout_account_id": "acct_test_creator",
        "milestones": [{"name": "Flights", "target_amount": "600"}, {"name": "Hotel", "target_amount": "400"}],
    }
    body.update(overrides)
    return client.post("/api/goals", json=body)


def test_create_goal_returns_one_time_edit_link(client):
    resp = _create(client)

    assert resp.status_code == 201
    body = resp.get_json()
    goal_id, secret = body["goal"]["id"], body["edit_secret"]
    assert body["edit_url"] == f"http://goalpost.test/goal/{goal_id}/edit/{secret}"
    assert [m["name"] for m in body["goal"]["milestones"]] == ["Flights", "Hotel"]
    assert "edit_secret_hash" not in body["goal"]


def test_create_goal_validation(client):
    assert _create(client, name="").status_code == 422
    assert _create(client, target_amount="-5").status_code == 422
    assert _create(client, milestones="nope").status_code == 422

    resp = _create(client, milestones=[{"name": "Flights", "target_amount": "600"}])
    assert resp.status_code == 422
    err = resp.get_json()["error"]
    assert err["type"] == "validation_failed"
    assert err["discrepancy"] == "400.00"


def test_create_goal_rejects_amounts_too_large_to_store(client):
    huge = _create(client, target_amount="1e30", milestones=None)
    assert huge.status_code == 422
    assert huge.get_json()["error"]["errors"]["target_amount"]

    over_ceiling = _create(client, target_amount="1e12", milestones=None)
    assert over_ceiling.status_code == 422
    assert over_ceiling.get_json()["error"]["type"] == "validation_failed"


def test_public_snapshot(client):
    goal_id = _create(client).get_json()["goal"]["id"]

    resp = client.get(f"/api/goals/{goal_id}")

    assert resp.status_code == 200
    snap = resp.get_json()
    assert snap["goal"]["name"] == "Spring tour"
    assert [m["order"] for m in snap["milestones"]] == [0, 1]
    assert snap["donations"] == []
    assert snap["progress"]["current_amount"] == "0.00"
    assert snap["progress"]["next_milestone"]["name"] == "Flights"


def test_unknown_goal_is_404(client):
    resp = client.get("/api/goals/nope")
    assert resp.status_code == 404
    assert resp.get_json()["error"]["type"] == "not_found"
    assert client.get("/api/goals/nope/donations").status_code == 404


def test_edit_requires_the_issued_secret(client):
    body = _create(client).get_json()
    goal_id, secret = body["goal"]["id"], body["edit_secret"]

    assert client.get(f"/api/goals/{goal_id}/edit/{secret}").status_code == 200

    denied = client.get(f"/api/goals/{goal_id}/edit/wrong-secret")
    assert denied.status_code == 403
    assert denied.get_json()["error"]["type"] == "invalid_secret"

    denied = client.patch(f"/api/goals/{goal_id}/edit/wrong-secret", json={"name": "Hijacked"})
    assert denied.status_code == 403
    assert client.get(f"/api/goals/{goal_id}").get_json()["goal"]["name"] == "Spring tour"


def test_patch_goal_and_milestones_together(client):
    body = _create(client).get_json()
    goal_id, secret = body["goal"]["id"], body["edit_secret"]

    resp = client.patch(
        f"/api/goals/{goal_id}/edit/{secret}",
        json={
            "name": "Summer tour",
            "target_amount": "1500",
            "milestones": [
                {"name": "Flights", "target_amount": "600"},
                {"name": "Hotel", "target_amount": "400"},
                {"name": "Food", "target_amount": "500"},
            ],
        },
    )

    assert resp.status_code == 200
    goal = resp.get_json()["goal"]
    assert goal["name"] == "Summer tour"
    assert goal["target_amount"] == 1500.0
    assert [m["name"] for m in goal["milestones"]] == ["Flights", "Hotel", "Food"]


def test_put_milestones_mismatch_keeps_previous_list(client):
    body = _create(client).get_json()
    goal_id, secret = body["goal"]["id"], body["edit_secret"]

    resp = client.put(
        f"/api/goals/{goal_id}/edit/{secret}/milestones",
        json={"milestones": [{"name": "Everything", "target_amount": "999"}]},
    )

    assert resp.status_code == 422
    snap = client.get(f"/api/goals/{goal_id}").get_json()
    assert [m["name"] for m in snap["milestones"]] == ["Flights", "Hotel"]


def test_put_milestones_replaces_list(client):
    body = _create(client).get_json()
    goal_id, secret = body["goal"]["id"], body["edit_secret"]

    resp = client.put(
        f"/api/goals/{goal_id}/edit/{secret}/milestones",
        json={"milestones": [{"name": "Everything", "target_amount": "1000"}]},
    )

    assert resp.status_code == 200
    assert [m["name"] for m in resp.get_json()["goal"]["milestones"]] == ["Everything"]


def test_put_milestones_with_unrepresentable_amount_is_422(client):
    body = _create(client).get_json()
    goal_id, secret = body["goal"]["id"], body["edit_secret"]

    resp = client.put(
        f"/api/goals/{goal_id}/edit/{secret}/milestones",
        json={"milestones": [{"name": "Everything", "target_amount": "1e400"}]},
    )

    assert resp.status_code == 422
    snap = client.get(f"/api/goals/{goal_id}").get_json()
    assert [m["name"] for m in snap["milestones"]] == ["Flights", "Hotel"]


def test_lowered_target_keeps_milestone_markers_on_the_bar(client):
    body = _create(client).get_json()
    goal_id, secret = body["goal"]["id"], body["edit_secret"]

    resp = client.patch(f"/api/goals/{goal_id}/edit/{secret}", json={"target_amount": "500"})
    assert resp.status_code == 200

    snap = client.get(f"/api/goals/{goal_id}")
    assert snap.status_code == 200
    progress = snap.get_json()["progress"]
    positions = [m["position_percent"] for m in progress["milestones"]]
    assert all(0 <= p <= 100 for p in positions)
    assert positions[-1] == 100.0
    assert progress["progress_percent"] <= 100


def test_donation_feed_limit_is_clamped(app, client):
    from goalpost.services import ledger

    goal_id = _create(client).get_json()["goal"]["id"]
    with app.app_context():
        for i in range(3):
            ledger.record_completed_donation(goal_id, None, provider_txn_id=f"pi_feed_{i}", amount_cents=1000)

    assert len(client.get(f"/api/goals/{goal_id}/donations?limit=1").get_json()["donations"]) == 1
    for raw in ("-1", "0"):
        resp = client.get(f"/api/goals/{goal_id}/donations?limit={raw}")
        assert resp.status_code == 200
        assert len(resp.get_json()["donations"]) == 1

    app.config["DONATION_FEED_LIMIT"] = 2
    assert len(client.get(f"/api/goals/{goal_id}/donations?limit=500").get_json()["donations"]) == 2
    assert len(client.get(f"/api/goals/{goal_id}/donations").get_json()["donations"]) == 2
