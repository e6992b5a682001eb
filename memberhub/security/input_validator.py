# memberhub/security/input_validator.py

import re
import uuid
from datetime import datetime, timezone

import bleach

# Input validation and sanitization at the HTTP boundary. Every method raises
# ValueError with a client-facing message; routes turn it into BadRequest.


class InputValidator:
    def __init__(self):
        self.allowed_html_tags = []
        self.allowed_html_attributes = {}

        self.patterns = {
            'email': re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'),
            'dni': re.compile(r'^\d{8}$'),
            'xss_script': re.compile(r'<script[^>]*>.*?</script>', re.IGNORECASE | re.DOTALL),
            'xss_event': re.compile(r'\bon\w+\s*=', re.IGNORECASE)
        }

    def sanitize_string(self, input_str, max_length=255):
        if not isinstance(input_str, str):
            raise ValueError("Input must be a string")
        if len(input_str) > max_length:
            input_str = input_str[:max_length]

        sanitized = re.sub(self.patterns['xss_script'], '', input_str)
        sanitized = re.sub(self.patterns['xss_event'], '', sanitized)
        sanitized = bleach.clean(sanitized, tags=self.allowed_html_tags,
                                 attributes=self.allowed_html_attributes, strip=True)
        return sanitized.strip()

    def validate_email(self, email):
        return isinstance(email, str) and bool(self.patterns['email'].match(email))

    def validate_dni(self, dni):
        return isinstance(dni, str) and bool(self.patterns['dni'].match(dni))

    def validate_uuid(self, value):
        if not isinstance(value, str):
            return False
        try:
            uuid.UUID(value)
        except ValueError:
            return False
        return True

    def require_json_object(self, payload):
        if not isinstance(payload, dict):
            raise ValueError("Request body must be a JSON object")
        return payload

    def reject_unknown_fields(self, payload, allowed):
        unknown = sorted(set(payload) - set(allowed))
        if unknown:
            raise ValueError(f"Unknown fields: {', '.join(unknown)}")

    def required_string(self, payload, field, max_length=255, min_length=1):
        value = payload.get(field)
        if not isinstance(value, str):
            raise ValueError(f"{field} is required")
        value = self.sanitize_string(value, max_length=max_length)
        if len(value) < min_length:
            raise ValueError(f"{field} must have at least {min_length} characters")
        return value

    def optional_string(self, payload, field, max_length=255):
        value = payload.get(field)
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError(f"{field} must be a string")
        return self.sanitize_string(value, max_length=max_length)

    def required_dni(self, payload, field='dni'):
        dni = payload.get(field)
        if not self.validate_dni(dni):
            raise ValueError(f"{field} must be 8 digits")
        return dni

    def required_uuid(self, payload, field):
        value = payload.get(field)
        if not self.validate_uuid(value):
            raise ValueError(f"{field} must be a UUID")
        return value

    def optional_uuid(self, payload, field):
        if payload.get(field) is None:
            return None
        return self.required_uuid(payload, field)

    def optional_email(self, payload, field='email'):
        email = payload.get(field)
        if email is None:
            return None
        if not self.validate_email(email):
            raise ValueError(f"{field} must be a valid email")
        return email.strip().lower()

    def optional_bool(self, payload, field):
        value = payload.get(field)
        if value is None:
            return None
        if not isinstance(value, bool):
            raise ValueError(f"{field} must be a boolean")
        return value

    def optional_int(self, payload, field):
        value = payload.get(field)
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{field} must be an integer")
        return value

    def string_list(self, payload, field, required=False):
        value = payload.get(field)
        if value is None and not required:
            return None
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValueError(f"{field} must be a list of strings")
        return [v.strip() for v in value if v.strip()]

    def parse_datetime(self, value, field):
        """ISO-8601 string to naive UTC datetime."""
        if not isinstance(value, str):
            raise ValueError(f"{field} must be an ISO-8601 date")
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            raise ValueError(f"{field} must be an ISO-8601 date")
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed

    def optional_enum(self, payload, field, enum_cls):
        value = payload.get(field)
        if value is None:
            return None
        try:
            return enum_cls(value)
        except ValueError:
            allowed = ', '.join(member.value for member in enum_cls)
            raise ValueError(f"{field} must be one of: {allowed}")

    def validate_bulk_vote(self, payload, max_selections=50):
        """Return ``[(candidate_id, position_id), ...]`` from a bulk-vote body."""
        payload = self.require_json_object(payload)
        selections = payload.get('selections')
        if not isinstance(selections, list):
            raise ValueError("selections must be a list")
        if len(selections) > max_selections:
            raise ValueError("Too many selections")
        pairs = []
        for selection in selections:
            if not isinstance(selection, dict):
                raise ValueError("Each selection must be an object")
            candidate_id = self.required_uuid(selection, 'candidateId')
            position_id = self.required_uuid(selection, 'electionPositionId')
            pairs.append((candidate_id, position_id))
        return pairs
