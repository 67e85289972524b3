"""Flask-WTF plumbing for JSON request bodies."""
from flask import request
from flask_wtf import FlaskForm
from wtforms import StringField

from utils.errors import ValidationError


def json_body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


class JSONForm(FlaskForm):
    """A form bound to the request's JSON object instead of form-encoded data."""

    class Meta:
        csrf = False

    @classmethod
    def from_request(cls, payload: dict | None = None):
        return cls(formdata=None, data=json_body() if payload is None else payload)

    def first_error(self) -> str:
        for field_name, messages in self.errors.items():
            if messages:
                label = getattr(self, field_name).label.text if hasattr(self, field_name) else field_name
                return f"{label}: {messages[0]}"
        return "Dados inválidos"

    def _reject_non_text(self) -> None:
        # JSON numbers, lists and objects reach text fields untouched; WTForms length/email checks expect str.
        for field in self:
            if isinstance(field, StringField) and field.data is not None and not isinstance(field.data, str):
                raise ValidationError(f"{field.label.text}: deve ser um texto")

    def validate_or_raise(self):
        self._reject_non_text()
        if not self.validate():
            raise ValidationError(self.first_error())
        return self
