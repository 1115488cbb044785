from __future__ import annotations

import re


def redact_credentials(text: str) -> str:
    """
    Remove platform secrets from text before it is logged.

    Credentials are write-only from the dashboard's point of view; they must
    never show up in log output, not even inside an echoed error message.
    """
    if not text:
        return text
    # Stripe secret / restricted keys
    text = re.sub(r"\b(sk|rk)_(live|test)_[A-Za-z0-9]+", "[STRIPE_KEY_HIDDEN]", text)
    text = re.sub(r"\bsk_[A-Za-z0-9_]{6,}", "[STRIPE_KEY_HIDDEN]", text)
    # Shopify admin / partner tokens
    text = re.sub(r"\bshp(at|ca|pa|ss)_[A-Za-z0-9]+", "[SHOPIFY_TOKEN_HIDDEN]", text)
    # Bearer headers copied into messages
    text = re.sub(r"Bearer\s+[A-Za-z0-9\-\._~\+/]+=*", "Bearer [TOKEN_HIDDEN]", text)
    return text
