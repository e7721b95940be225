"""
Input forms for the JSON API.

JSON bodies are flattened into a MultiDict (see `formdata_from_json`) and
validated with plain WTForms; CSRF does not apply to these endpoints.
"""

from decimal import Decimal
from typing import Any, Dict, List, Mapping

from werkzeug.datastructures import MultiDict
from wtforms import DecimalField, Form, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from goalpost.exceptions import ValidationFailed

_MIN_AMOUNT = Decimal("0.01")


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def formdata_from_json(payload: Mapping[str, Any]) -> MultiDict:
    """Scalars only; None and nested values are dropped."""
    items = []
    for key, value in (payload or {}).items():
        if value is None or isinstance(value, (dict, list, tuple)):
            continue
        if isinstance(value, bool):
            value = "1" if value else ""
        items.append((key, str(value)))
    return MultiDict(items)


def validate_json(form_cls, payload: Mapping[str, Any]) -> Form:
    form = form_cls(formdata=formdata_from_json(payload))
    if not form.validate():
        raise ValidationFailed("Invalid input", errors=dict(form.errors))
    return form


class MilestoneForm(Form):
    name = StringField(
        "Milestone name",
        filters=[_strip],
        validators=[DataRequired(message="Milestone name is required"), Length(max=200)],
    )
    target_amount = DecimalField(
        "Amount",
        validators=[
            DataRequired(message="Amount is required"),
            NumberRange(min=_MIN_AMOUNT, message="Amount must be greater than 0"),
        ],
    )


class GoalForm(Form):
    name = StringField(
        "Goal name",
        filters=[_strip],
        validators=[DataRequired(message="Goal name is required"), Length(max=200)],
    )
    description = TextAreaField("Description", validators=[Optional(), Length(max=20_000)])
    target_amount = DecimalField(
        "Target amount",
        validators=[
            DataRequired(message="Target amount is required"),
            NumberRange(min=_MIN_AMOUNT, message="Target amount must be greater than 0"),
        ],
    )
    payout_account_id = StringField(
        "Payout account",
        filters=[_strip],
        validators=[DataRequired(message="Payout account is required"), Length(max=255)],
    )


class GoalUpdateForm(Form):
    name = StringField("Goal name", filters=[_strip], validators=[Optional(), Length(max=200)])
    description = TextAreaField("Description", validators=[Optional(), Length(max=20_000)])
    target_amount = DecimalField(
        "Target amount",
        validators=[Optional(), NumberRange(min=_MIN_AMOUNT, message="Target amount must be greater than 0")],
    )


class CheckoutForm(Form):
    goal_id = StringField("Goal", filters=[_strip], validators=[DataRequired(), Length(max=36)])
    amount = DecimalField(
        "Amount",
        validators=[
            DataRequired(message="Please enter an amount."),
            NumberRange(min=_MIN_AMOUNT, message="Amount must be greater than 0"),
        ],
    )
    donor_name = StringField("Your name", filters=[_strip], validators=[Optional(), Length(max=160)])
    message = TextAreaField("Message", validators=[Optional(), Length(max=480)])


def parse_milestones(raw: Any) -> List[Dict[str, Any]]:
    """Validate a JSON milestone list item by item; returns [{name, target_amount}, ...]."""
    if not isinstance(raw, list):
        raise ValidationFailed("milestones must be a list", errors={"milestones": ["must be a list"]})

    out: List[Dict[str, Any]] = []
    errors: Dict[str, Any] = {}
    for idx, item in enumerate(raw):
        if not isinstance(item, Mapping):
            errors[f"milestones.{idx}"] = ["must be an object"]
            continue
        form = MilestoneForm(formdata=formdata_from_json(item))
        if not form.validate():
            for field, msgs in form.errors.items():
                errors[f"milestones.{idx}.{field}"] = msgs
            continue
        out.append({"name": form.name.data, "target_amount": form.target_amount.data})
    if errors:
        raise ValidationFailed("Invalid milestones", errors=errors)
    return out
