"""CLI entrypoint for the Minnesota precinct boundary pipeline."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from mn_precincts.common.config_loader import load_manifest, resolve_layer
from mn_precincts.common.constants import DEFAULT_LAYER, EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS
from mn_precincts.common.errors import PipelineError
from mn_precincts.common.fs import write_json
from mn_precincts.common.http import HttpClient
from mn_precincts.common.ids import generate_run_id
from mn_precincts.common.logging import build_logger, log_event
from mn_precincts.common.sources import FALLBACK_SOURCES
from mn_precincts.harvest.adapter import (
    AdapterConfig,
    PartitionedPlan,
    build_adapter_config,
    get_metadata,
    harvest_layer,
)
from mn_precincts.harvest.sample import SampleTransport
from mn_precincts.pipeline.validate import enforce_contract, validate_collection, write_run_report

COMMANDS = ("fetch", "metadata", "validate-manifest", "demo")


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("--manifest", default="./config/minnesota.yml")
    parser.add_argument("--overlay", default=None)
    parser.add_argument("--layer", default=DEFAULT_LAYER)
    parser.add_argument("--out", default="./data/out/mn-precincts.geojson")
    parser.add_argument("--proxy-base", default=None)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--log-dir", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--strict", action="store_true")
    return parser.parse_args(argv)


def _load_adapter_config(args: argparse.Namespace) -> AdapterConfig:
    overlay = Path(args.overlay) if args.overlay else None
    manifest = load_manifest(Path(args.manifest), overlay)
    layer_config = resolve_layer(manifest, args.layer)
    return build_adapter_config(layer_config, layer=args.layer)


def _write_outputs(args: argparse.Namespace, config: AdapterConfig, harvest, run_id: str) -> int:
    out_path = Path(args.out)
    write_json(out_path, harvest.collection, sort_keys=False)

    validation = validate_collection(harvest.collection)
    report_path = out_path.with_name(f"{out_path.stem}.report.json")
    write_run_report(
        report_path,
        run_id=run_id,
        layer=config.layer,
        mode=config.plan.mode,
        harvest=harvest,
        validation=validation,
    )
    if args.strict:
        enforce_contract(validation)
    if harvest.failed_sources or validation["errors"]:
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    log_dir = Path(args.log_dir) if args.log_dir else None
    logger = build_logger(run_id, log_dir=log_dir, level=args.log_level)

    if args.command == "metadata":
        print(json.dumps(get_metadata(), indent=2))
        return EXIT_SUCCESS

    log_event(
        logger,
        "command start",
        run_id=run_id,
        stage=args.command,
        layer=args.layer,
        event="STAGE_START",
        status="ok",
    )
    try:
        if args.command == "validate-manifest":
            _load_adapter_config(args)
            exit_code = EXIT_SUCCESS
        elif args.command == "demo":
            schema = _load_adapter_config(args).schema
            config = AdapterConfig(
                plan=PartitionedPlan(sources=FALLBACK_SOURCES, fallback=True),
                schema=schema,
                layer=args.layer,
            )
            harvest = harvest_layer(config, SampleTransport(FALLBACK_SOURCES), logger=logger)
            exit_code = _write_outputs(args, config, harvest, run_id)
        else:
            config = _load_adapter_config(args)
            with HttpClient(proxy_base=args.proxy_base) as client:
                harvest = harvest_layer(config, client, logger=logger)
            exit_code = _write_outputs(args, config, harvest, run_id)
    except PipelineError as exc:
        log_event(
            logger,
            f"{args.command} failed: {exc}",
            run_id=run_id,
            stage=args.command,
            layer=args.layer,
            event="STAGE_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return EXIT_HARD_FAIL

    log_event(
        logger,
        "command end",
        run_id=run_id,
        stage=args.command,
        layer=args.layer,
        event="STAGE_END",
        status="ok" if exit_code == EXIT_SUCCESS else "partial",
    )
    return exit_code


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except Exception:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
