"""
Conversation resolver.

A conversation between two people is the union of both channel tables,
ordered by ``created_at``.  Rows with equal timestamps keep the order they
were read in: staff channel first, then patient channel.
"""
from dataclasses import dataclass
from itertools import chain
from operator import attrgetter
from typing import Iterable, List, Optional

from django.contrib.auth import get_user_model

from messaging.services import store
from messaging.services.identity import check_partner_access, format_profile, require_profile
from messaging.types import CHANNELS, Caller, Message

User = get_user_model()


@dataclass
class ConversationSummary:
    partner: object
    last_message: Message
    unread: int

    def to_payload(self) -> dict:
        return {
            'partner': format_profile(self.partner),
            'lastMessage': self.last_message.to_payload(),
            'unread': self.unread,
        }


def merge_timelines(*timelines: Iterable[Message]) -> List[Message]:
    merged = list(chain(*timelines))
    # list.sort is stable, ties keep table read order
    merged.sort(key=attrgetter('created_at'))
    return merged


def load_conversation(viewer_id: int, partner_id: int) -> List[Message]:
    return merge_timelines(*(store.list_for_pair(viewer_id, partner_id, channel) for channel in CHANNELS))


def unread_count(timeline: Iterable[Message], viewer_id: int) -> int:
    return sum(1 for m in timeline if m.receiver_id == viewer_id and not m.is_read)


def conversation_for(caller: Caller, partner_id: int, channel: Optional[str] = None) -> List[Message]:
    """The caller's timeline with ``partner_id``, optionally a single channel."""
    partner = require_profile(partner_id)
    check_partner_access(caller, partner)
    if channel is not None:
        return store.list_for_pair(caller.id, partner_id, channel)
    return load_conversation(caller.id, partner_id)


def list_conversations(caller: Caller) -> List[ConversationSummary]:
    """One summary per partner, most recently active first."""
    timeline = merge_timelines(*(store.list_for_viewer(caller.id, channel) for channel in CHANNELS))
    by_partner = {}
    for message in timeline:
        partner_id = message.receiver_id if message.sender_id == caller.id else message.sender_id
        by_partner.setdefault(partner_id, []).append(message)

    profiles = User.objects.in_bulk(list(by_partner))
    summaries = []
    for partner_id, messages in by_partner.items():
        partner = profiles.get(partner_id)
        if partner is None:
            continue
        summaries.append(ConversationSummary(
            partner=partner,
            last_message=messages[-1],
            unread=unread_count(messages, caller.id),
        ))
    summaries.sort(key=lambda s: s.last_message.created_at, reverse=True)
    return summaries
