"""
Command line interface for the mixed wireless/wired scenario harness.

Usage:
    python run_simulation.py --numNodes=5 --mobility=0 --traffic=CBR
    python run_simulation.py --config scenarios/mobile_mixed.yaml --per-flow
    python run_simulation.py --create-config mobile_mixed --config-output scenarios/mobile_mixed.json
"""

import argparse
import logging
import os
import sys
import traceback
from typing import Any, Dict, List, Optional

from .core.config import DelayReduction, ScenarioConfig, ThroughputReduction
from .core.exceptions import ScenarioError
from .simulation.runner import ScenarioRunner
from .utils.config_parser import ConfigParser

logger = logging.getLogger(__name__)


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Mixed Wi-Fi/CSMA scenario with CBR and bursty traffic',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --numNodes=5 --mobility=0 --traffic=CBR
  %(prog)s --numNodes=5 --mobility=1 --traffic=CBR_Burst --per-flow
  %(prog)s --config scenarios/mobile_mixed.yaml
  %(prog)s --create-config mobile_mixed --config-output scenarios/mobile_mixed.json
        """
    )

    # Scenario inputs; None means "not given" so file values can apply
    parser.add_argument('--mobility', type=int, choices=[0, 1], default=None,
                        help='Enable mobility (1 for true, 0 for false)')
    parser.add_argument('--numNodes', type=int, default=None,
                        help='Number of Wi-Fi stations (default 5)')
    parser.add_argument('--traffic', type=str, default=None,
                        help='Traffic type (CBR, Burst, CBR_Burst)')

    parser.add_argument('--config', '-c', type=str,
                        help='Scenario configuration file (JSON or YAML)')
    parser.add_argument('--create-config', type=str,
                        choices=sorted(ConfigParser.get_scenario_configs()),
                        help='Write a predefined scenario configuration and exit')
    parser.add_argument('--config-output', type=str,
                        help='Output path for --create-config')

    parser.add_argument('--output-dir', '-o', type=str, default=None,
                        help='Directory for the flow monitor file and exports')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed for the simulation engine')
    parser.add_argument('--throughput-reduction', type=str, default=None,
                        choices=[r.value for r in ThroughputReduction],
                        help='Per-flow throughput reduction')
    parser.add_argument('--delay-reduction', type=str, default=None,
                        choices=[r.value for r in DelayReduction],
                        help='Per-flow delay reduction')

    parser.add_argument('--per-flow', action='store_true',
                        help='Print per-flow statistics before the totals')
    parser.add_argument('--csv', action='store_true',
                        help='Export per-flow statistics to flow_stats.csv')
    parser.add_argument('--json', action='store_true',
                        help='Save the aggregate report to simulation_summary.json')
    parser.add_argument('--plot', action='store_true',
                        help='Save topology and per-flow plots')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose output')

    return parser.parse_args(argv)


def build_config(args) -> ScenarioConfig:
    """Combine the configuration file (if any) with explicit flags."""
    config_data: Dict[str, Any] = {"scenario": {}}
    if args.config:
        config_data = ConfigParser.load_dict(args.config)

    overrides: Dict[str, Dict[str, Any]] = {"scenario": {}, "simulation": {}, "report": {}}
    if args.numNodes is not None:
        overrides["scenario"]["num_wireless_stations"] = args.numNodes
    if args.mobility is not None:
        overrides["scenario"]["mobility_enabled"] = bool(args.mobility)
    if args.traffic is not None:
        overrides["scenario"]["traffic_pattern"] = args.traffic
    if args.seed is not None:
        overrides["simulation"]["random_seed"] = args.seed
    if args.output_dir is not None:
        overrides["simulation"]["output_directory"] = args.output_dir
    if args.verbose:
        overrides["simulation"]["log_level"] = "DEBUG"
    if args.throughput_reduction is not None:
        overrides["report"]["throughput_reduction"] = args.throughput_reduction
    if args.delay_reduction is not None:
        overrides["report"]["delay_reduction"] = args.delay_reduction

    merged = ConfigParser.merge_configs(config_data, overrides)
    return ConfigParser._dict_to_config(merged)


def setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        stream=sys.stderr,
    )


def run_scenario(config: ScenarioConfig, args) -> bool:
    """Run one scenario and write the requested outputs."""
    os.makedirs(config.output_directory, exist_ok=True)

    runner = ScenarioRunner(config)
    result = runner.run()
    runner.print_report(result, per_flow=args.per_flow)

    if args.csv:
        runner.collector.export_to_csv(config.output_directory)
    if args.json:
        summary_file = os.path.join(config.output_directory, "simulation_summary.json")
        runner.aggregator.save_summary_json(result.report, summary_file, config)
    if args.plot:
        from .utils.visualization import ScenarioVisualizer

        visualizer = ScenarioVisualizer()
        visualizer.plot_topology(result.setup.topology, config.output_directory)
        visualizer.plot_flow_statistics(result.flows, config.output_directory,
                                        runner.aggregator.active_window)
        logger.info(f"Plots saved to {config.output_directory}")

    return True


def create_scenario_config(scenario: str, args) -> bool:
    """Create a new scenario configuration file."""
    output_file = args.config_output or f"scenarios/{scenario}.json"
    ConfigParser.create_default_config(output_file, scenario)
    print(f"Configuration created: {output_file}")
    return True


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)
    setup_logging("DEBUG" if args.verbose else "WARNING")

    try:
        if args.create_config:
            create_scenario_config(args.create_config, args)
            return 0

        config = build_config(args)
        logging.getLogger().setLevel(getattr(logging, config.log_level))
        run_scenario(config, args)
        return 0

    except (ScenarioError, FileNotFoundError) as e:
        logger.error(f"Scenario aborted: {e}")
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
