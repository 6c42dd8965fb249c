from app.shared.core.logging import pii_redactor


def test_pii_redactor_nested():
    event_dict = {
        "tenant_id": "tenant-1",
        "email": "pii@example.com",
        "nested": {
            "raw_key": "scim_0123456789abcdef",
            "safe": "data",
        },
        "list": [
            {"Authorization": "Bearer scim_abc"},
            "safe_item",
        ],
    }

    redacted = pii_redactor(None, None, event_dict)

    assert redacted["tenant_id"] == "tenant-1"
    # Email is regex-redacted in the value, not key-based
    assert redacted["email"] == "[EMAIL_REDACTED]"
    assert redacted["nested"]["raw_key"] == "[REDACTED]"
    assert redacted["nested"]["safe"] == "data"
    assert redacted["list"][0]["Authorization"] == "[REDACTED]"
    assert redacted["list"][1] == "safe_item"


def test_pii_redactor_masks_session_and_key_fields():
    redacted = pii_redactor(
        None,
        None,
        {
            "event": "scim_request",
            "session_token": "eyJ...",
            "hashed_key": "abc",
            "api-key": "scim_x",
            "key_prefix": "scim_abc",
        },
    )
    assert redacted["event"] == "scim_request"
    assert redacted["session_token"] == "[REDACTED]"
    assert redacted["hashed_key"] == "[REDACTED]"
    assert redacted["api-key"] == "[REDACTED]"
    assert redacted["key_prefix"] == "scim_abc"


def test_pii_redactor_regex_in_free_text():
    redacted = pii_redactor(
        None, None, {"event": "User with userName 'alice@example.com' already exists"}
    )
    assert "alice@example.com" not in redacted["event"]
    assert "[EMAIL_REDACTED]" in redacted["event"]
