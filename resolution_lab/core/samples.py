from __future__ import annotations

import random
import string
import time
from datetime import date, timedelta

from resolution_lab.core.schema import CustomerRecord, WorkItem

TIERS = ("Bronze", "Silver", "Gold", "Platinum")

_FIRST_NAMES = ("Ava", "Liam", "Noah", "Mia", "Sofia", "Ethan", "Priya", "Kenji", "Lucas", "Amara")
_LAST_NAMES = ("Okafor", "Lindqvist", "Moreau", "Tanaka", "Reyes", "Novak", "Sharma", "Walsh", "Costa", "Brennan")
_DOMAINS = ("example.com", "mail.test", "corp.example", "inbox.test")

_TRANSCRIPTS = (
    "Hi, I moved jobs. Please switch my email to {first}.{last}@newfirm.com and keep everything else.",
    "This is the third time I'm calling about billing! Upgrade me to {upgrade} or I'm cancelling.",
    "Can you update my phone number to +1-555-{digits}? The old one is disconnected.",
    "I just wanted to say the support last week was great. No changes needed, thanks.",
    "Please downgrade me to Bronze, money is tight this quarter. Also my name is spelled {first} {last}-{first_alt}.",
    "My email {email} keeps bouncing invoices, use {first}@{domain} from now on. Honestly frustrated.",
)


def _token(rng: random.Random, length: int = 7) -> str:
    alphabet = string.ascii_uppercase + string.digits
    return "".join(rng.choice(alphabet) for _ in range(length))


def generate_work_items(count: int, *, rng: random.Random | None = None) -> list[WorkItem]:
    """Build ``count`` synthetic customers with chat transcripts."""

    rng = rng or random.Random()
    items: list[WorkItem] = []
    now_ms = time.time() * 1000
    for index in range(max(count, 0)):
        first = rng.choice(_FIRST_NAMES)
        last = rng.choice(_LAST_NAMES)
        domain = rng.choice(_DOMAINS)
        email = f"{first.lower()}.{last.lower()}@{domain}"
        tier = rng.choice(TIERS)
        upgrade = TIERS[min(TIERS.index(tier) + 1, len(TIERS) - 1)]
        transcript = rng.choice(_TRANSCRIPTS).format(
            first=first.lower(),
            last=last.lower(),
            first_alt=rng.choice(_FIRST_NAMES),
            upgrade=upgrade,
            digits=f"{rng.randint(0, 9999):04d}",
            email=email,
            domain=rng.choice(_DOMAINS),
        )
        updated = date.today() - timedelta(days=rng.randint(1, 400))
        record = CustomerRecord(
            customer_id=f"CUST-{rng.randint(1000, 9999)}",
            name=f"{first} {last}",
            email=email,
            phone=f"+1-555-{rng.randint(0, 9999):04d}" if rng.random() > 0.3 else None,
            current_tier=tier,
            last_updated=updated.isoformat(),
        )
        items.append(
            WorkItem(
                id=_token(rng),
                source_record=record,
                transcript=transcript,
                created_at=now_ms + index,
            )
        )
    return items


def manual_work_item(name: str, email: str, transcript: str, *, rng: random.Random | None = None) -> WorkItem:
    rng = rng or random.Random()
    item_id = _token(rng)
    record = CustomerRecord(
        customer_id=f"MAN-{item_id}",
        name=name,
        email=email,
        phone=None,
        current_tier="Silver",
        last_updated=date.today().isoformat(),
    )
    return WorkItem(id=item_id, source_record=record, transcript=transcript, created_at=time.time() * 1000)
