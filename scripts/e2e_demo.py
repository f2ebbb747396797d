#!/usr/bin/env python3
"""
End-to-end demo script for the Contract Lifecycle & Validation Engine.

Prerequisites:
    1. API, worker, Postgres and Temporal running
    2. Services healthy: GET /health/ready
    3. CCA_AGENT_URL set for a real canonical pass (simulated otherwise)

Usage:
    python scripts/e2e_demo.py

    # Validate a draft reading stored as JSON:
    python scripts/e2e_demo.py --draft path/to/draft.json

    # Output raw JSON:
    python scripts/e2e_demo.py --json
"""

import argparse
import json
import sys
import time
from datetime import datetime, timezone
from pathlib import Path

import httpx

# Configuration
API_BASE = "http://localhost:8000"
POLL_INTERVAL = 3  # seconds
MAX_WAIT = 180  # seconds

DEMO_CONTRACT = {
    "organization_id": "00000000-0000-0000-0000-000000000001",
    "title": "Contrato de Prestacao de Servicos de Manutencao",
    "state": "sent_for_signature",
    "start_of_effect": "2025-01-01",
    "term_date": "2025-12-31",
    "renewal_decision_deadline": "2025-10-01",
    "notice_period_days": 60,
    "renewal_type": "renovacao_automatica",
}

DEMO_DRAFT = {
    "titulo_contrato": "Contrato de Prestacao de Servicos de Manutencao",
    "tipo_contrato": "prestacao_servicos",
    "data_inicio_vigencia": "2025-01-01",
    "data_termo": "2025-12-31",
    "tipo_renovacao": "automatica",
    "aviso_previo_nao_renovacao_dias": 60,
    "lei_aplicavel": "Lei portuguesa",
    "valor_total_estimado": 24000,
    "moeda": "EUR",
}

TERMINAL_STATUSES = {"succeeded", "failed"}


def check_health(client: httpx.Client) -> bool:
    """Check if API is healthy."""
    try:
        resp = client.get(f"{API_BASE}/health")
        return resp.status_code == 200
    except httpx.RequestError:
        return False


def check_readiness(client: httpx.Client) -> dict:
    """Check readiness of all dependencies."""
    try:
        resp = client.get(f"{API_BASE}/health/ready")
        return resp.json()
    except httpx.RequestError as e:
        return {"error": str(e)}


def create_contract(client: httpx.Client, body: dict) -> dict:
    resp = client.post(f"{API_BASE}/api/contracts", json=body)
    resp.raise_for_status()
    return resp.json()


def record_event(client: httpx.Client, contract_id: str, event_type: str, note: str = None) -> httpx.Response:
    """Record a lifecycle event; returns the raw response so rejections can be shown."""
    body = {
        "event_type": event_type,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "note": note,
    }
    return client.post(f"{API_BASE}/api/contracts/{contract_id}/events", json=body)


def start_validation(client: httpx.Client, contract_id: str, draft: dict) -> dict:
    resp = client.post(
        f"{API_BASE}/api/contracts/{contract_id}/validations",
        json={"draft": draft, "confidence": 0.8},
    )
    resp.raise_for_status()
    return resp.json()


def get_job(client: httpx.Client, job_id: str) -> dict:
    resp = client.get(f"{API_BASE}/api/validations/{job_id}")
    resp.raise_for_status()
    return resp.json()


def poll_until_complete(client: httpx.Client, job_id: str, max_wait: int = MAX_WAIT) -> dict:
    """Poll the validation job until it is terminal."""
    start = time.time()
    while time.time() - start < max_wait:
        job = get_job(client, job_id)
        if job.get("status") in TERMINAL_STATUSES:
            return job

        elapsed = int(time.time() - start)
        print(f"  Status: {job.get('validation_status')} ({elapsed}s elapsed)", end="\r")
        time.sleep(POLL_INTERVAL)

    return {"status": "timeout", "error": f"Exceeded {max_wait}s wait time"}


def print_job(job: dict) -> None:
    """Pretty print a finished validation job."""
    print("\n" + "=" * 60)
    print("VALIDATION RESULT")
    print("=" * 60)
    print(f"Job ID: {job.get('id')}")
    print(f"Job status: {job.get('status')}")
    print(f"Validation status: {job.get('validation_status')}")
    if job.get("error"):
        print(f"Error: {job['error']}")

    diffs = job.get("diffs", [])
    print(f"\n--- Diffs ({len(diffs)}) ---")
    for d in diffs:
        flag = "MATERIAL" if d.get("material") else "minor"
        print(f"  [{flag}] {d['field_path']}: {d.get('draft_value')!r} -> {d.get('canonical_value')!r}")
    print("\n" + "=" * 60)


def main():
    parser = argparse.ArgumentParser(description="E2E demo for the Contract Lifecycle & Validation Engine")
    parser.add_argument("--draft", "-d", type=Path, help="Path to a draft reading (JSON)")
    parser.add_argument("--json", action="store_true", help="Output raw JSON")
    args = parser.parse_args()

    draft = DEMO_DRAFT
    if args.draft:
        if not args.draft.exists():
            print(f"Error: draft not found: {args.draft}")
            sys.exit(1)
        draft = json.loads(args.draft.read_text(encoding="utf-8"))

    print("=" * 60)
    print("CONTRACT LIFECYCLE & VALIDATION - E2E DEMO")
    print("=" * 60)

    with httpx.Client(timeout=30.0) as client:
        # Step 1: Health check
        print("\n[1/6] Checking API health...")
        if not check_health(client):
            print("  Error: API is not responding.")
            sys.exit(1)
        print("  API is healthy")

        # Step 2: Readiness check
        print("\n[2/6] Checking service readiness...")
        readiness = check_readiness(client)
        if "error" in readiness:
            print(f"  Error: {readiness['error']}")
            sys.exit(1)

        checks = readiness.get("checks", readiness)
        for service, status in checks.items():
            icon = "OK" if status == "ok" else "FAIL"
            print(f"  {service}: {icon}")

        if readiness.get("status") != "ok":
            print("  Error: Not all services are ready")
            sys.exit(1)

        # Step 3: Create a contract
        print("\n[3/6] Creating contract...")
        contract = create_contract(client, DEMO_CONTRACT)
        contract_id = contract["id"]
        print(f"  Contract ID: {contract_id}")
        print(f"  State: {contract['state']}")
        deadline = contract.get("next_deadline")
        if deadline:
            print(f"  Next deadline: {deadline['label']} on {deadline['date']} ({deadline['days_remaining']} days)")
        window = contract.get("notice_window")
        if window:
            print(f"  Notice window: {window['notice_date']} ({window['status']})")

        # Step 4: Lifecycle events, including one the state machine rejects
        print("\n[4/6] Recording lifecycle events...")
        for event_type in ("assinatura", "inicio_vigencia", "criacao", "nota_interna"):
            resp = record_event(client, contract_id, event_type, note="e2e demo")
            if resp.status_code == 201:
                print(f"  {event_type}: accepted, state={resp.json()['state']}")
            else:
                print(f"  {event_type}: rejected ({resp.status_code}) {resp.json().get('detail')}")

        # Step 5: Validation
        print("\n[5/6] Starting validation...")
        try:
            started = start_validation(client, contract_id, draft)
        except httpx.HTTPStatusError as e:
            print(f"  Error starting validation: {e.response.text}")
            sys.exit(1)
        job_id = started["job_id"]
        print(f"  Job ID: {job_id}")
        print(f"  Workflow ID: {started['workflow_id']}")

        # Step 6: Poll for completion
        print(f"\n[6/6] Waiting for validation (max {MAX_WAIT}s)...")
        job = poll_until_complete(client, job_id)
        if job.get("status") == "timeout":
            print("  Timed out waiting for validation")
            sys.exit(1)
        print("  Validation finished!              ")

    if args.json:
        print(json.dumps(job, indent=2, default=str))
    else:
        print_job(job)

    sys.exit(0 if job.get("status") == "succeeded" else 1)


if __name__ == "__main__":
    main()
