"""Detection of bot-challenge pages served in place of feed content."""

# Challenge markers show up in the first few hundred bytes of the page, so
# only a prefix of the body is inspected.  Keep these as specific strings:
# a broad heuristic (e.g. "captcha" anywhere) would reject real feeds whose
# headlines happen to mention it.
BLOCK_SCAN_CHARS = 1200

JS_BLOCK_PATTERNS = (
    "Please enable JS and disable any ad blocker",
    "captcha-delivery.com",
    "geo.captcha-delivery.com",
    "ct.captcha-delivery.com",
)


def is_blocked(body: str) -> bool:
    head = (body or "")[:BLOCK_SCAN_CHARS]
    return any(marker in head for marker in JS_BLOCK_PATTERNS)
