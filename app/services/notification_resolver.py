"""
Decides which staff get the "new visitor" email.

The visitor types "meet with" as free text, so it often matches nobody. The
resolver falls through three tiers and stops at the first one that delivers at
least one email:

  1. staff            - the single best match for meet_with (see staff_matcher)
  2. location_admins  - every active admin at the visitor's location
  3. global_admins    - every active admin

A tier runs only if nothing was delivered by the tiers before it; a tier-1
match whose email bounced still falls through to tier 2. Each tier returns a
TierResult instead of raising, and a dispatcher exception counts as a failed
delivery, so resolve() never fails its caller.
"""

from dataclasses import dataclass, field
from typing import Optional

from app.services.email_dispatcher import TemplateKind
from app.services.staff_directory import StaffDirectory, StaffDirectoryEntry
from app.services.staff_matcher import match_staff
from app.utils.logger import get_logger

logger = get_logger(__name__)

TIER_STAFF = "staff"
TIER_LOCATION_ADMINS = "location_admins"
TIER_GLOBAL_ADMINS = "global_admins"


@dataclass
class DeliveryAttempt:
    tier: Optional[str]
    recipient: str
    delivered: bool


@dataclass
class TierResult:
    tier: str
    attempts: list[DeliveryAttempt] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return any(a.delivered for a in self.attempts)


@dataclass
class ResolutionResult:
    visitor_id: object
    tiers: list[TierResult] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return any(t.delivered for t in self.tiers)

    @property
    def winning_tier(self) -> Optional[str]:
        for t in self.tiers:
            if t.delivered:
                return t.tier
        return None

    @property
    def attempts(self) -> list[DeliveryAttempt]:
        return [a for t in self.tiers for a in t.attempts]


class NotificationResolver:
    def __init__(self, directory: StaffDirectory, dispatcher):
        self.directory = directory
        self.dispatcher = dispatcher

    async def _deliver(self, tier: str, entry: StaffDirectoryEntry, visitor_id,
                       details: Optional[dict]) -> DeliveryAttempt:
        try:
            ok = bool(await self.dispatcher.notify(entry.email, visitor_id,
                                                   TemplateKind.STAFF_NEW_VISITOR, details))
        except Exception as e:
            logger.error(f"[NOTIFY] Dispatcher raised for {entry.email} (visitor {visitor_id}): {e}",
                         exc_info=True)
            ok = False
        if not ok:
            logger.warning(f"[NOTIFY] Tier {tier}: delivery to {entry.email} failed (visitor {visitor_id})")
        return DeliveryAttempt(tier=tier, recipient=entry.email, delivered=ok)

    async def _notify_all(self, tier: str, recipients: list[StaffDirectoryEntry], visitor_id,
                          details: Optional[dict]) -> TierResult:
        result = TierResult(tier=tier)
        for entry in recipients:
            if not entry.email:
                continue
            result.attempts.append(await self._deliver(tier, entry, visitor_id, details))
        return result

    async def staff_tier(self, visitor_id, meet_with, location_id, details) -> TierResult:
        found = match_staff(meet_with, self.directory.list_active_staff())
        if found is None:
            logger.info(f"[NOTIFY] No staff match for '{meet_with}' (visitor {visitor_id})")
            return TierResult(tier=TIER_STAFF)
        matcher, entry = found
        logger.info(f"[NOTIFY] '{meet_with}' matched {entry.full_name} <{entry.email}> by {matcher}")
        return await self._notify_all(TIER_STAFF, [entry], visitor_id, details)

    async def location_admin_tier(self, visitor_id, meet_with, location_id, details) -> TierResult:
        admins = self.directory.list_location_admins(location_id) if location_id is not None else []
        logger.info(f"[NOTIFY] Falling back to {len(admins)} admin(s) of location {location_id}")
        return await self._notify_all(TIER_LOCATION_ADMINS, admins, visitor_id, details)

    async def global_admin_tier(self, visitor_id, meet_with, location_id, details) -> TierResult:
        admins = self.directory.list_global_admins()
        logger.info(f"[NOTIFY] Falling back to {len(admins)} global admin(s)")
        return await self._notify_all(TIER_GLOBAL_ADMINS, admins, visitor_id, details)

    async def resolve(self, visitor_id, meet_with: Optional[str], location_id=None,
                      details: Optional[dict] = None) -> ResolutionResult:
        result = ResolutionResult(visitor_id=visitor_id)
        for tier in (self.staff_tier, self.location_admin_tier, self.global_admin_tier):
            try:
                tier_result = await tier(visitor_id, meet_with, location_id, details)
            except Exception as e:
                # Directory lookups can fail too; treat as an empty tier and keep going
                logger.error(f"[NOTIFY] {tier.__name__} failed for visitor {visitor_id}: {e}", exc_info=True)
                continue
            result.tiers.append(tier_result)
            if tier_result.delivered:
                logger.info(f"[NOTIFY] Visitor {visitor_id} notified via {tier_result.tier}")
                return result

        logger.error(f"[NOTIFY] No staff could be notified about visitor {visitor_id}")
        return result
