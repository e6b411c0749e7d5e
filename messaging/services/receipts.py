import logging
from typing import Optional

from messaging.services import store
from messaging.services.audit import log_action
from messaging.services.identity import check_partner_access, require_profile
from messaging.types import CHANNELS, Caller

logger = logging.getLogger(__name__)


def mark_read(caller: Caller, partner_id: int, channel: Optional[str] = None) -> int:
    """Mark everything ``partner_id`` sent to the caller as read.

    Without a channel both tables are covered.  Safe to repeat: a second
    call with nothing unread returns 0.
    """
    partner = require_profile(partner_id)
    check_partner_access(caller, partner)
    channels = CHANNELS if channel is None else (store.model_for(channel).CHANNEL,)

    updated = 0
    for ch in channels:
        updated += store.mark_read(caller.id, partner_id, ch)
    if updated:
        logger.info("viewer %s read %d message(s) from %s", caller.id, updated, partner_id)
        log_action(user_id=caller.id, action='messages_read', object_type='user', object_id=partner_id,
                   detail={'updated': updated, 'channel': channel})
    return updated
