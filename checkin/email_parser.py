# checkin/email_parser.py
import re

# Quoted-reply headers. Each is removed once (first match), not globally.
REPLY_MARKERS = [
    re.compile(r"^On .+ wrote:.*$", re.MULTILINE),
    re.compile(r"^From:.*$", re.MULTILINE),
    re.compile(r"^Sent:.*$", re.MULTILINE),
    re.compile(r"^To:.*$", re.MULTILINE),
    re.compile(r"^Subject:.*$", re.MULTILINE),
    re.compile(r"^---.*$", re.MULTILINE),
    re.compile(r"^_{10,}.*$", re.MULTILINE),
    re.compile(r"^>.*$", re.MULTILINE),
]

HTML_TAG = re.compile(r"<[^>]*>")

# Minimal entity set; &amp; goes last so "&amp;lt;" decodes to "&lt;", not "<".
HTML_ENTITIES = [
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&amp;", "&"),
]

# Valedictions and signature separators; everything after them is dropped.
SIGNATURE_PATTERNS = [
    re.compile(r"Best regards,?.*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"Sincerely,?.*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"Thanks,?.*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"Regards,?.*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"Sent from .*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"^--\s*$.*", re.MULTILINE | re.DOTALL),
]

EXTRA_NEWLINES = re.compile(r"\n{3,}")


def _strip_once(text: str) -> str:
    for marker in REPLY_MARKERS:
        text = marker.sub("", text, count=1)

    text = HTML_TAG.sub("", text)
    for entity, char in HTML_ENTITIES:
        text = text.replace(entity, char)
    # decoding can surface new "<...>" sequences ("&lt;b&gt;")
    text = HTML_TAG.sub("", text)

    for pattern in SIGNATURE_PATTERNS:
        text = pattern.sub("", text, count=1)

    text = text.strip()
    return EXTRA_NEWLINES.sub("\n\n", text)


def strip_email_content(content) -> str:
    """
    Reduce a raw email body (plain text or HTML) to the reply the sender wrote.

    Removes quoted-reply headers, HTML tags and the common entities, trailing
    signature blocks, then trims and collapses runs of blank lines. The pass is
    repeated until the text stops changing, which makes the result a fixed
    point: stripping an already stripped reply returns it unchanged.
    """
    if not content:
        return ""
    text = str(content).replace("\r\n", "\n").replace("\r", "\n")
    # every pass that changes the text shortens it, so this terminates
    while True:
        cleaned = _strip_once(text)
        if cleaned == text:
            return text
        text = cleaned


def extract_email(address: str) -> str:
    """Pull the bare address out of ``"Display Name <addr>"`` or ``addr``."""
    if not address:
        return ""
    m = re.search(r"<([^<>]+)>", address)
    return (m.group(1) if m else address).strip().lower()
