#!/usr/bin/env python3
"""Seed development attribution data into DynamoDB."""

import argparse
import os
import random
import sys
from datetime import timedelta

# Add the shared layer to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src", "layers", "shared", "python"))

from pathwise.models.base import utc_now
from pathwise.models.lead import Lead
from pathwise.models.payment import Payment
from pathwise.models.touchpoint import Touchpoint
from pathwise.repositories.lead import LeadRepository
from pathwise.repositories.payment import PaymentRepository
from pathwise.repositories.touchpoint import TouchpointRepository

SOURCES = [
    ("google", "cpc", "brand"),
    ("facebook", "paid_social", "retargeting"),
    ("newsletter", "email", "weekly"),
    (None, None, None),
]
PAGES = ["/", "/pricing", "/features", "/blog/attribution", "/checkout"]
DEVICES = ["desktop", "mobile", "tablet"]


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Seed development data")
    parser.add_argument("--stage", default="dev", help="Deployment stage")
    parser.add_argument("--project", default="demo-project", help="Project ID")
    parser.add_argument("--visitors", type=int, default=10, help="Visitors to create")
    args = parser.parse_args()

    table_name = f"pathwise-{args.stage}"
    print(f"Seeding data to table: {table_name}")

    touchpoints = TouchpointRepository(table_name)
    leads = LeadRepository(table_name)
    payments = PaymentRepository(table_name)

    now = utc_now()
    for n in range(args.visitors):
        visitor_id = f"pw_v_demo_{n:03d}"
        session_id = f"pw_demo_{n:03d}"
        start = now - timedelta(days=random.randint(0, 20), minutes=random.randint(0, 600))
        source, medium, campaign = random.choice(SOURCES)
        device = random.choice(DEVICES)

        for step, page in enumerate(random.sample(PAGES, k=random.randint(1, len(PAGES)))):
            touchpoints.record(
                Touchpoint(
                    project_id=args.project,
                    visitor_id=visitor_id,
                    session_id=session_id,
                    event_type="session_start" if step == 0 else "page_view",
                    page_url=f"https://demo.pathwise.dev{page}",
                    utm_source=source if step == 0 else None,
                    utm_medium=medium if step == 0 else None,
                    utm_campaign=campaign if step == 0 else None,
                    device_type=device,
                    country_code="BR",
                    created_at=start + timedelta(minutes=step * 3),
                )
            )

        if n % 2 == 0:
            leads.create_lead(
                Lead(
                    project_id=args.project,
                    session_id=session_id,
                    email=f"demo{n:03d}@example.com",
                    name=f"Demo {n}",
                    created_at=start + timedelta(minutes=20),
                )
            )

        if n % 4 == 0:
            payments.create_payment(
                Payment(
                    project_id=args.project,
                    visitor_id=visitor_id,
                    amount=round(random.uniform(20, 400), 2),
                    order_id=f"order-{n:03d}",
                    customer_email=f"demo{n:03d}@example.com",
                    created_at=start + timedelta(days=1),
                )
            )

        print(f"Created visitor: {visitor_id} ({source or 'direct'})")

    print("\nSeeding complete!")


if __name__ == "__main__":
    main()
