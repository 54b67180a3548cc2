# Copyright 2026 Cisco Systems, Inc. and its affiliates
#
# SPDX-License-Identifier: Apache-2.0

"""Batch pipeline for the incident dashboard.

Loads the incident corpus, applies one filter state (and optionally a
drill-down overlay), and writes the resulting dashboard views to disk.

Usage:
    python -m aggregation.pipeline \\
        --config aggregation/config_dashboard.json
    python -m aggregation.pipeline \\
        --input-file data/incident_map.json \\
        --output-dir output/dashboard --end-year 2019 --navigator
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

from aggregation.config_utils import (
    config_section,
    load_config_from_args,
    setup_logging,
)
from aggregation.data_processor import StackBy, incidents_to_frame
from aggregation.filters import ALL, DrillDownOverlay, FilterCriteria
from aggregation.session import (
    DashboardSession,
    DashboardView,
    LoadState,
    view_to_dict,
)
from mitre_mapping.navigator import navigator_filename, save_navigator_layer

logger = logging.getLogger(__name__)

FILTER_KEYS = ("start_year", "end_year", "group", "sector", "loss_type")


def save_dashboard_view(data: Dict[str, Any], output_file: Path) -> None:
    """
    Save a serialized dashboard view to JSON file.

    Args:
        data: Dashboard view dictionary
        output_file: Path to output file
    """
    output_file.parent.mkdir(parents=True, exist_ok=True)

    with output_file.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, default=str)

    logger.info("Dashboard view saved to: %s", output_file)


def save_config_snapshot(config: Dict[str, Any], output_dir: Path) -> None:
    """
    Save a snapshot of the configuration used.

    Args:
        config: Configuration dictionary
        output_dir: Output directory
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    config_snapshot_path = output_dir / "config.json"
    with config_snapshot_path.open("w", encoding="utf-8") as f:
        json.dump(config, f, indent=2)

    logger.info("Configuration snapshot saved to: %s", config_snapshot_path)


def _log_pipeline_summary(view: DashboardView, output_dir: Path) -> None:
    display = view.summary.display()
    logger.info("=" * 60)
    logger.info("DASHBOARD COMPLETE")
    logger.info("=" * 60)
    logger.info("Summary:")
    logger.info("  - Incidents: %s", display["total_incidents"])
    logger.info("  - Total estimated loss: %s", display["total_loss"])
    logger.info("  - Top group: %s", display["top_group"])
    logger.info("  - Top sector: %s", display["top_sector"])
    logger.info("  - Mapped countries: %d", len(view.geo.countries))
    if view.geo.unmapped_countries:
        logger.info(
            "  - Unmapped countries: %s", ", ".join(view.geo.unmapped_countries)
        )
    logger.info("  - Matrix: %s", view.matrix.state.value)
    if view.overlay is not None:
        logger.info("  - Explorer: %s", view.explorer_description)
    logger.info("Output directory: %s", output_dir)
    logger.info("=" * 60)


def run_dashboard_pipeline(
    input_file: str,
    output_dir: str,
    criteria: FilterCriteria,
    stack_by: StackBy | str = StackBy.NONE,
    overlay: DrillDownOverlay | None = None,
    export_navigator: bool = False,
    save_config_snapshot_flag: bool = True,
    config_dict: Dict[str, Any] | None = None,
) -> DashboardView:
    """
    Run the complete dashboard pipeline.

    This function:
    1. Loads and normalizes the incident corpus
    2. Applies the filters and the optional overlay
    3. Saves the dashboard view and the filtered incidents table
    4. Optionally exports a Navigator layer and a config snapshot

    Args:
        input_file: Path or URL of the incident corpus JSON
        output_dir: Directory to save outputs
        criteria: Global filter state
        stack_by: Time series stacking dimension
        overlay: Optional drill-down overlay
        export_navigator: Whether to write a Navigator layer
        save_config_snapshot_flag: Whether to save config snapshot
        config_dict: Configuration dictionary (for snapshot)

    Returns:
        The computed DashboardView

    Raises:
        RuntimeError: If the corpus could not be loaded
    """
    logger.info("=" * 60)
    logger.info("DASHBOARD PIPELINE")
    logger.info("=" * 60)
    logger.info("Input: %s", input_file)
    logger.info("Output: %s", output_dir)
    logger.info("Filters: %s", criteria.to_dict())
    logger.info("=" * 60)

    session = DashboardSession()
    if session.load(input_file) is LoadState.FAILED:
        raise RuntimeError(session.error)

    criteria = session.update_filters(**criteria.to_dict())
    session.set_stack_by(stack_by)
    if overlay is not None:
        session.set_overlay(overlay.kind.value, overlay.value)
    view = session.view()

    output_path = Path(output_dir)
    save_dashboard_view(view_to_dict(view), output_path / "dashboard_view.json")

    table_file = output_path / "filtered_incidents.csv"
    incidents_to_frame(view.explorer).to_csv(table_file, index=False)
    logger.info("Filtered incidents saved to: %s", table_file)

    if export_navigator:
        layer = session.export_navigator()
        save_navigator_layer(layer, output_path / navigator_filename())

    if save_config_snapshot_flag and config_dict:
        save_config_snapshot(config_dict, output_path)

    _log_pipeline_summary(view, output_path)
    return view


def _parse_pipeline_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for the dashboard pipeline."""
    parser = argparse.ArgumentParser(
        description="Filter and aggregate cyber incident records",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Basic usage with config file
    python -m aggregation.pipeline --config aggregation/config_dashboard.json

    # Filter by year range and group, export a Navigator layer
    python -m aggregation.pipeline \\
        --input-file data/incident_map.json \\
        --output-dir output/dashboard \\
        --start-year 2016 --end-year 2019 --group "Lazarus Group" --navigator

    # Drill down on a country
    python -m aggregation.pipeline --config aggregation/config_dashboard.json \\
        --drill-country "South Korea" --debug
        """,
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to JSON config file (optional if other args provided)",
    )
    parser.add_argument(
        "--input-file", type=str, help="Path or URL of the incident corpus JSON"
    )
    parser.add_argument("--output-dir", type=str, help="Directory to save outputs")
    parser.add_argument("--start-year", type=str, help='First year, or "all"')
    parser.add_argument("--end-year", type=str, help='Last year, or "all"')
    parser.add_argument("--group", type=str, help="Primary group to keep")
    parser.add_argument("--sector", type=str, help="Target sector to keep")
    parser.add_argument("--loss-type", type=str, help="Loss type to keep")
    parser.add_argument(
        "--stack-by",
        choices=[member.value for member in StackBy],
        help="Category breakdown of the yearly time series",
    )
    drill = parser.add_mutually_exclusive_group()
    drill.add_argument("--drill-country", type=str, help="Drill down on a country")
    drill.add_argument(
        "--drill-technique", type=str, help="Drill down on a technique ID"
    )
    parser.add_argument(
        "--navigator",
        action="store_true",
        help="Export an ATT&CK Navigator layer of the filtered techniques",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _resolve_criteria(
    args: argparse.Namespace, config_dict: Dict[str, Any]
) -> FilterCriteria:
    params = dict(config_section(config_dict, "filters"))
    for key in FILTER_KEYS:
        value = getattr(args, key)
        if value is not None:
            params[key] = value
    return FilterCriteria.from_params(
        {key: params.get(key, ALL) for key in FILTER_KEYS}
    )


def _resolve_overlay(
    args: argparse.Namespace, config_dict: Dict[str, Any]
) -> DrillDownOverlay | None:
    if args.drill_country:
        return DrillDownOverlay(kind="country", value=args.drill_country)
    if args.drill_technique:
        return DrillDownOverlay(kind="technique", value=args.drill_technique)
    drill_down = config_section(config_dict, "processing", "drill_down")
    if drill_down.get("kind") and drill_down.get("value"):
        return DrillDownOverlay(kind=drill_down["kind"], value=str(drill_down["value"]))
    return None


def _validate_pipeline_params(input_file: str | None, output_dir: str | None) -> bool:
    """Validate required pipeline parameters."""
    if not input_file:
        logger.error("Error: --input-file or config.input.incidents is required")
        return False
    if not output_dir:
        logger.error("Error: --output-dir or config.output.directory is required")
        return False
    return True


def main(argv: list[str] | None = None) -> int:
    """Main function."""
    args = _parse_pipeline_args(argv)

    setup_logging(
        debug=args.debug,
        module_names=["aggregation", "incident_store", "mitre_mapping"],
    )

    try:
        config_dict = load_config_from_args(args.config)
    except FileNotFoundError:
        return 1

    # CLI args override config
    output_config = config_section(config_dict, "output")
    input_file = args.input_file or config_section(config_dict, "input").get(
        "incidents"
    )
    output_dir = args.output_dir or output_config.get("directory")
    if not _validate_pipeline_params(input_file, output_dir):
        return 1

    stack_by = args.stack_by or config_section(config_dict, "processing").get(
        "stack_by", StackBy.NONE.value
    )
    export_navigator = args.navigator or bool(
        output_config.get("export_navigator", False)
    )
    save_config_snapshot_flag = output_config.get("save_config_snapshot", True)

    try:
        criteria = _resolve_criteria(args, config_dict)
        overlay = _resolve_overlay(args, config_dict)
        run_dashboard_pipeline(
            input_file=input_file,
            output_dir=output_dir,
            criteria=criteria,
            stack_by=stack_by,
            overlay=overlay,
            export_navigator=export_navigator,
            save_config_snapshot_flag=save_config_snapshot_flag,
            config_dict=config_dict if config_dict else None,
        )
        return 0
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error("Pipeline failed: %s", e, exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
