"""
Text and date formatting for post/comment display.

parse_text runs as a two-phase pipeline:

Phase 1 (needs the database): collect every @mention, resolve all usernames
to user ids with ONE query, producing a {username: id} table. The table is
the per-call memo: a username that appears ten times is looked up once.

Phase 2 (pure): escape the text, then apply local substitutions against the
table. Nothing in phase 2 touches the database, so render_text() can be
tested with a hand-written table.

Markup:
    **bold**  *italic*  __underline__  ~~strike~~  ||spoiler||
    ==#ff8800==highlighted==      (hex colours only)
    @username                      (link to the profile if the user exists)
"""
import re
from typing import Callable, Dict, Iterable, List, Optional

from django.contrib.auth.models import User
from django.utils import timezone
from django.utils.html import escape
from django.utils.timesince import timesince

MENTION_RE = re.compile(r'@(\w+)')

# Applied in order; bold must run before italic
MARKUP_RULES = [
    (re.compile(r'\*\*(.+?)\*\*'), r'<b>\1</b>'),
    (re.compile(r'\*(.+?)\*'), r'<i>\1</i>'),
    (re.compile(r'__(.+?)__'), r'<u>\1</u>'),
    (re.compile(r'~~(.+?)~~'), r'<s>\1</s>'),
    (re.compile(r'\|\|(.+?)\|\|'), r'<span class="spoiler-text">\1</span>'),
    (
        re.compile(r'==#([0-9a-fA-F]{6}|[0-9a-fA-F]{3})==(.+?)=='),
        r'<mark style="background-color: #\1;">\2</mark>',
    ),
]

UsernameLookup = Callable[[List[str]], Dict[str, int]]


def extract_mentions(texts: Iterable[Optional[str]]) -> List[str]:
    """Unique mentioned usernames across texts, first-seen order."""
    usernames = []
    for text in texts:
        if text:
            usernames.extend(MENTION_RE.findall(text))
    return list(dict.fromkeys(usernames))


def lookup_user_ids(usernames: List[str]) -> Dict[str, int]:
    return dict(
        User.objects
        .filter(username__in=usernames)
        .values_list('username', 'id')
    )


def resolve_mentions(usernames: Iterable[str], lookup: UsernameLookup = lookup_user_ids) -> Dict[str, int]:
    """
    Phase 1: build the {username: user id} table. Unknown usernames are
    left out of the table and render as plain text.
    """
    pending = list(dict.fromkeys(usernames))
    if not pending:
        return {}
    found = lookup(pending)
    return {username: found[username] for username in pending if username in found}


def render_text(text: Optional[str], mention_table: Dict[str, int]) -> str:
    """Phase 2: escaped text with markup and mention links applied."""
    if not text:
        return ''

    html = escape(text)
    for pattern, replacement in MARKUP_RULES:
        html = pattern.sub(replacement, html)

    def mention_link(match):
        username = match.group(1)
        user_id = mention_table.get(username)
        if user_id is None:
            return match.group(0)
        return f'<a href="/profile/{user_id}" data-mention="true" class="mention">@{username}</a>'

    return MENTION_RE.sub(mention_link, html)


def parse_texts(texts: List[Optional[str]], lookup: UsernameLookup = lookup_user_ids) -> List[str]:
    """Render many texts with a single username lookup."""
    table = resolve_mentions(extract_mentions(texts), lookup)
    return [render_text(text, table) for text in texts]


def parse_text(text: Optional[str], lookup: UsernameLookup = lookup_user_ids) -> str:
    return parse_texts([text], lookup)[0]


def format_time_ago(value, now=None) -> str:
    """'3 hours ago', 'just now', or 'date unavailable' for missing values."""
    if value is None:
        return 'date unavailable'
    now = now or timezone.now()
    if (now - value).total_seconds() < 60:
        return 'just now'
    # timesince uses non-breaking spaces
    return f"{timesince(value, now, depth=1)} ago".replace('\xa0', ' ')
