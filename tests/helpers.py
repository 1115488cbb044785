"""Builders shared by the test modules."""

import json
from unittest.mock import MagicMock

from mrrboard.integrations.models import Integration

API_URL = "https://api.example.test/api"


def make_response(status_code=200, body=None, text=None):
    """Minimal stand-in for requests.Response."""
    resp = MagicMock()
    resp.status_code = status_code
    if text is None:
        text = json.dumps(body) if body is not None else ""
    resp.text = text
    if body is None:
        resp.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        resp.json.return_value = body
    return resp


def integration(id=1, platform="stripe", status="active", **extra):
    data = {
        "id": id,
        "platform": platform,
        "platform_name": extra.pop("platform_name", f"{(platform or '').title()} Integration"),
        "status": status,
        "customer_count": extra.pop("customer_count", 12),
        "revenue": extra.pop("revenue", 1500.0),
    }
    data.update(extra)
    return Integration.from_dict(data)
