import argparse
import logging
import sys
from salah.core.app import SalahApp
from salah.plugins.qibla import distance_to_kaaba_km, get_qibla_direction


def setup_basic_logging():
    """Setup basic stdout logging before config is loaded"""
    root_logger = logging.getLogger()
    if not root_logger.handlers:  # Only add handler if none exists
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        ))
        root_logger.addHandler(handler)
        root_logger.setLevel(logging.DEBUG)
        logging.debug("Basic logging initialized")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Prayer times and Qibla service')
    parser.add_argument('--config',
                        help='Path to config file (default: ~/.salah/config.yaml)')
    parser.add_argument('--today', action='store_true',
                        help="Print today's prayer times for the configured location and exit")
    parser.add_argument('--qibla', action='store_true',
                        help='Print the Qibla direction for the configured location and exit')
    return parser.parse_args(argv)


def main(argv=None) -> int:
    setup_basic_logging()
    args = parse_args(argv)
    one_shot = args.today or args.qibla

    app = SalahApp(config_path=args.config, watch_config=not one_shot, schedule_tasks=not one_shot)
    if not one_shot:
        app.run()
        return 0

    try:
        if args.today:
            app.print_today()
        if args.qibla:
            calculator = app.calculator
            bearing = get_qibla_direction(calculator.latitude, calculator.longitude)
            distance = distance_to_kaaba_km(calculator.latitude, calculator.longitude)
            print(f"Qibla: {bearing:.1f}° from true north ({distance:.0f} km to the Kaaba)")
    finally:
        app.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
