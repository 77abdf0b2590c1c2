#!/usr/bin/env python3
"""
Seed the directory with deterministic demo leads through the real pipeline.

Generates plumbing businesses across Perth suburbs, injects faults at
--fault-rate, and runs them through run_ingestion as one `seed` run.

Usage:
    python scripts/seed_demo_data.py --count 200 --fault-rate 0.1 --seed 42 --instance plumbers-perth
    python scripts/seed_demo_data.py --dry-run --verbose   # normalize only, write nothing

Requires: DATABASE_URL set (or defaults to sqlite:///local.db).
"""
import sys
import os
import argparse
import json
import logging

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from directory.config import DATABASE_URL, INGESTION_BATCH_SIZE
from directory.database import Base, import_models, make_engine, make_session_factory
from directory.logging_config import configure_logging
from directory.pipeline.demo_leads import generate_demo_payloads
from directory.pipeline.manager import run_ingestion
from directory.pipeline.types import IngestionSource
from directory.services.store import IngestionStore

logger = logging.getLogger('scripts.seed_demo_data')


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Seed deterministic demo leads through the ingestion pipeline')
    parser.add_argument('-c', '--count', type=int, default=100, help='Number of payloads to generate')
    parser.add_argument('-f', '--fault-rate', type=float, default=0.05, help='Fraction of payloads with an injected fault')
    parser.add_argument('-s', '--seed', type=int, default=42, help='Random seed')
    parser.add_argument('-i', '--instance', default='plumbers-perth', help='Instance key for the ingestion run')
    parser.add_argument('-d', '--dry-run', action='store_true', help='Normalize only; write nothing')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log each invalid payload')
    parser.add_argument('--batch-size', type=int, default=INGESTION_BATCH_SIZE)
    parser.add_argument('--database-url', default=DATABASE_URL)
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    configure_logging(level='DEBUG' if args.verbose else None)

    payloads = generate_demo_payloads(args.count, seed=args.seed, fault_rate=args.fault_rate)
    params = {'count': args.count, 'fault_rate': args.fault_rate, 'seed': args.seed}

    store = None
    if not args.dry_run:
        import_models()
        engine = make_engine(args.database_url)
        # Ensure tables exist (for SQLite local dev)
        Base.metadata.create_all(engine)
        store = IngestionStore(make_session_factory(engine))
        store.ensure_reference_data()

    batch = run_ingestion(
        store,
        IngestionSource.SEED,
        args.instance,
        payloads,
        params=params,
        created_by='seed-cli',
        batch_size=args.batch_size,
        dry_run=args.dry_run,
    )

    if args.verbose:
        for item in batch.invalid:
            logger.debug("Payload %d rejected: %s", item['index'], item['error'])
        for result in batch.results:
            if not result.success:
                logger.debug("Lead failed (raw lead %s): %s", result.raw_lead_id, result.error)

    print(json.dumps({'run_id': batch.run_id, 'stats': batch.stats}, indent=2))
    return batch


if __name__ == '__main__':
    main()
