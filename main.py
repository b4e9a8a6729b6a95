#!/usr/bin/env python3
"""
Main entry point for the Typing Performance Analytics engine

This script provides different modes of operation:
1. Simulate mode - Drive synthetic practice sessions through the engine
2. Test mode - Run component smoke tests
"""

import os
import sys
import argparse
import logging

# Add src directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), 'src'))


def setup_logging(level=logging.INFO, log_file='typepulse.log'):
    """Setup logging configuration; no log file is written when log_file is None"""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def run_simulate_mode(sessions=12, seed=None, config=None):
    """Run synthetic practice sessions and report metrics and level changes"""
    print("Starting Typing Analytics - Simulate Mode")
    print(f"Simulating {sessions} practice sessions...")

    try:
        from typepulse.difficulty_controller import DifficultyController
        from typepulse.simulation import run_practice

        difficulty = DifficultyController(config=config)
        completed = run_practice(sessions, seed=seed, config=config, difficulty=difficulty)

        for number, session in enumerate(completed, start=1):
            print(f"\n--- Session {number} ({session.drill_type}) ---")
            print(f"WPM: {session.final_wpm} (target {session.target_wpm})")
            print(f"Accuracy: {session.accuracy.raw:.1f}% | "
                  f"Adjusted: {session.accuracy.adjusted:.1f}% | "
                  f"Corrections: {session.accuracy.correction_ratio:.2f}")
            print(f"Duration: {session.duration_ms / 1000:.1f} seconds, "
                  f"{len(session.keystrokes)} keystrokes")

        level = difficulty.get_current_level()
        phase = difficulty.get_progression_phase()

        print("\n" + "="*50)
        print("PRACTICE SUMMARY")
        print("="*50)
        print(f"Current Level: {level.name} ({level.id})")
        print(f"Progression Phase: {phase.phase} - {phase.name}")

        frame = difficulty.history_frame()
        if not frame.empty:
            print("\nAverages by level:")
            summary = frame.groupby('drill_type')[['final_wpm', 'accuracy_raw']].mean()
            for level_id, row in summary.iterrows():
                print(f"  {level_id}: {row['final_wpm']:.1f} WPM, {row['accuracy_raw']:.1f}%")

        weak_patterns = difficulty.get_weak_patterns()
        if weak_patterns:
            print("\nWeak patterns:")
            for (expected, actual), count in weak_patterns:
                print(f"  {expected!r} typed as {actual!r}: {count}")

        print("\nRecommendations:")
        for recommendation in difficulty.get_recommendations():
            print(f"  - {recommendation}")

        return 0

    except Exception as e:
        print(f"ERROR: {e}")
        return 1


def run_test_mode():
    """Run component smoke tests"""
    print("Running System Tests...")

    try:
        test_results = {}

        # Test event buffer
        print("\nTesting Event Buffer...")
        try:
            from typepulse.event_buffer import CircularEventBuffer
            from typepulse.models import KeystrokeEvent
            buffer = CircularEventBuffer(capacity=3)
            for i in range(4):
                buffer.push(KeystrokeEvent(timestamp=i, key='a', expected='a', is_correct=True, time_delta=1))
            test_results['buffer'] = [e.timestamp for e in buffer.get_recent(3)] == [1, 2, 3]
            print("✓ Event Buffer: PASSED" if test_results['buffer'] else "✗ Event Buffer: FAILED")
        except Exception as e:
            test_results['buffer'] = False
            print(f"✗ Event Buffer: FAILED ({e})")

        # Test session controller and metrics
        print("\nTesting Session Controller...")
        try:
            from typepulse.session_controller import SessionController
            from typepulse.simulation import ManualTimerFactory, SimulatedClock
            clock = SimulatedClock()
            controller = SessionController(clock=clock, timer_factory=ManualTimerFactory())
            controller.start_session('beginner-1', 35)
            for char in 'hello world':
                clock.advance(200)
                controller.record_keystroke(char, char)
            snapshot = controller.refresh_metrics()
            session = controller.end_session()
            test_results['session'] = (session is not None and snapshot.wpm > 0
                                       and session.accuracy.raw == 100.0)
            print("✓ Session Controller: PASSED" if test_results['session'] else "✗ Session Controller: FAILED")
        except Exception as e:
            test_results['session'] = False
            print(f"✗ Session Controller: FAILED ({e})")

        # Test difficulty controller
        print("\nTesting Difficulty Controller...")
        try:
            from typepulse.difficulty_controller import DifficultyController
            from typepulse.simulation import run_practice
            difficulty = DifficultyController()
            sessions = run_practice(3, seed=42, difficulty=difficulty)
            test_results['difficulty'] = (len(sessions) == 3
                                          and len(difficulty.get_recommendations()) > 0)
            print("✓ Difficulty Controller: PASSED" if test_results['difficulty'] else "✗ Difficulty Controller: FAILED")
        except Exception as e:
            test_results['difficulty'] = False
            print(f"✗ Difficulty Controller: FAILED ({e})")

        # Print summary
        print("\n" + "="*50)
        print("TEST SUMMARY")
        print("="*50)

        passed = sum(test_results.values())
        total = len(test_results)

        print(f"Tests Passed: {passed}/{total}")

        for test_name, result in test_results.items():
            status = "PASSED" if result else "FAILED"
            icon = "✓" if result else "✗"
            print(f"  {icon} {test_name}: {status}")

        return 0 if passed == total else 1

    except Exception as e:
        print(f"ERROR: {e}")
        return 1


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description="Typing Performance Analytics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py simulate                   # Simulate 12 sessions (default)
  python main.py simulate --sessions 30     # Longer practice run
  python main.py simulate --seed 7          # Reproducible run
  python main.py test                       # Run component smoke tests
        """
    )

    parser.add_argument(
        'mode',
        choices=['simulate', 'test'],
        default='simulate',
        nargs='?',
        help='Operation mode (default: simulate)'
    )

    parser.add_argument(
        '--sessions',
        type=int,
        default=12,
        help='Number of practice sessions to simulate (default: 12)'
    )

    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Random seed for the synthetic typist'
    )

    parser.add_argument(
        '--config',
        default='config.yaml',
        help='Path to the YAML configuration file (default: config.yaml)'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help='Logging level (default: system.log_level from the config file)'
    )

    parser.add_argument(
        '--log-file',
        default='typepulse.log',
        help='Log file written in simulate mode (default: typepulse.log)'
    )

    args = parser.parse_args()

    from typepulse.config import load_config
    from typepulse.exceptions import ConfigError

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"ERROR: {e}")
        return 1

    # Setup logging; test mode writes no log file
    log_level = getattr(logging, (args.log_level or config['system']['log_level']).upper(), logging.INFO)
    setup_logging(log_level, log_file=None if args.mode == 'test' else args.log_file)

    # Run appropriate mode
    try:
        if args.mode == 'simulate':
            return run_simulate_mode(args.sessions, args.seed, config)
        elif args.mode == 'test':
            return run_test_mode()
        else:
            parser.print_help()
            return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 0
    except Exception as e:
        logging.error(f"Unexpected error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
