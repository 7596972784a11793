#!/usr/bin/env python3
"""Post a realistic dummy ERTC form submission to a running receiver.

Run against a local server:
    python -m scripts.send_sample_submission
    python -m scripts.send_sample_submission --url http://localhost:8000/webhook --count 3
"""

from __future__ import annotations

import argparse
import json
import random

import httpx
from faker import Faker

fake = Faker()
Faker.seed(42)
random.seed(42)

QUARTERS = ["q1", "q2", "q3"]


def _revenue_pair() -> tuple[dict[str, str], dict[str, str]]:
    """Baseline/comparison revenue with a mix of qualifying and non-qualifying quarters."""
    baseline: dict[str, str] = {}
    comparison: dict[str, str] = {}
    for q in QUARTERS:
        base = round(random.uniform(50_000, 500_000), 2)
        drop = random.choice([0.1, 0.3, 0.5, 0.65, 0.9])
        baseline[q] = f"{base:.2f}"
        comparison[q] = f"{base * (1 - drop):.2f}"
    return baseline, comparison


def build_submission() -> dict:
    baseline, comparison = _revenue_pair()
    owners = random.randint(1, 3)
    share = round(100 / owners, 2)
    has_relatives = random.choice(["yes", "no"])
    return {
        "formData": {
            "userEmail": fake.company_email(),
            "userId": fake.uuid4(),
            "qualifyingQuestions": {
                "w2_employees_2020": random.randint(1, 400),
                "government_shutdown": random.choice(["yes", "no"]),
                "supply_chain_disruption": random.choice(["yes", "no"]),
            },
            "businessChallenges": {
                "description": fake.paragraph(nb_sentences=2),
                "affected_operations": random.sample(
                    ["dine-in", "travel", "events", "retail", "manufacturing"], k=2
                ),
            },
            "requestedInfo": {
                "business_name": fake.company(),
                "ein": fake.numerify("##-#######"),
                "gross_sales_2019": baseline,
                "gross_sales_2021": comparison,
            },
            "ownershipStructure": [
                {"owner_name": fake.name(), "ownership_percentage": share} for _ in range(owners)
            ],
            "relatives": {
                "has_relatives": has_relatives,
                "relative_rows": (
                    [{"relative_name": fake.name(), "relationship": "Sibling"}]
                    if has_relatives == "yes"
                    else []
                ),
            },
            "uploadedFiles": {
                "payroll_reports": [{"name": "payroll_2021.pdf"}],
            },
        }
    }


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--url", default="http://localhost:8000/webhook")
    parser.add_argument("--count", type=int, default=1)
    args = parser.parse_args()

    with httpx.Client(timeout=30.0) as client:
        for _ in range(args.count):
            submission = build_submission()
            files = {
                "payroll_reports": (
                    "payroll_2021.pdf",
                    b"%PDF-1.4\n% sample payroll report\n",
                    "application/pdf",
                )
            }
            response = client.post(
                args.url,
                data={"submissionData": json.dumps(submission)},
                files=files,
            )
            body = response.json()
            data = body.get("data") or {}
            print(
                f"  {response.status_code} submission={data.get('submissionId')} "
                f"qualifying={data.get('qualifyingQuarters')}"
            )


if __name__ == "__main__":
    main()
