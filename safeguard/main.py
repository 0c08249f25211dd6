"""
Main application for the SafeGuard alerting engine
Wires detectors, coordinator, gate and confirmation flow, and provides the CLI
"""

import argparse
import asyncio
import logging
import os
import sys

from .scheduler import LoopScheduler
from .gate import ConfirmationGate
from .alerts import AlertLog
from .confirmation import ConfirmationFlow, ConsolePrompt
from .countdown import InactivityCountdown
from .coordinator import CorrelationCoordinator
from .signal_processor import SignalProcessor
from .fall_detector import FallDetector
from .scream_detector import ScreamDetector
from .manual_trigger import ManualTrigger
from .events import ConfirmationOutcome
from .config import (
    SCREAM_MODEL_PATH, SCREAM_TRIGGER_DB, LOG_FILE, GATE_COOLDOWN_SECONDS
)

# -------------------------------------------------------------------
# Logging configuration
# -------------------------------------------------------------------
logger = logging.getLogger(__name__)


class SafeguardApp:
    """
    Owns one instance of every component and routes events between them
    """

    def __init__(self, scheduler, audio=None, scorer=None, prompt=None,
                 log_file=LOG_FILE, trigger_db=SCREAM_TRIGGER_DB,
                 cooldown=GATE_COOLDOWN_SECONDS):
        self.scheduler = scheduler
        self.audio = audio
        self.scorer = scorer
        self.auto_safety = False

        self.gate = ConfirmationGate(cooldown=cooldown, clock=scheduler.now)
        self.alert_log = AlertLog(log_file)
        self.prompt = prompt or ConsolePrompt()
        self.confirmation = ConfirmationFlow(self.gate, self.prompt, scheduler, sink=self.alert_log)
        self.confirmation.outcome_listeners.add(self._on_outcome)

        self.countdown = InactivityCountdown(self.gate, self.confirmation, scheduler)
        self.coordinator = CorrelationCoordinator(
            self.countdown, self.confirmation, self.gate, scheduler,
            on_send_alert=self._on_send_alert,
        )

        self.fall_detector = FallDetector(scheduler)
        self.fall_detector.fall_listeners.add(self._on_fall)

        self.signal_processor = SignalProcessor(scheduler, on_sample=self._on_sample)
        self.signal_processor.add_listener(self.fall_detector.handle_sample)
        self.signal_processor.add_listener(self.countdown.handle_sample)

        capture = audio.capture_pcm if (audio is not None and scorer is not None) else None
        self.scream_detector = ScreamDetector(
            scheduler, level_meter=audio, scorer=scorer, capture_pcm=capture,
            trigger_db=trigger_db,
        )
        self.scream_detector.scream_listeners.add(self._on_scream)
        self.scream_detector.candidate_listeners.add(
            lambda c: logger.debug(f"Scream candidate {c.decibel:.1f} dB")
        )

        self.manual_trigger = ManualTrigger(self.coordinator.on_manual_trigger, scheduler, gate=self.gate)
        self.manual_trigger.start_listening()
        self.manual_trigger.set_shake_enabled(True)

    # -------------------------------------------------------------------
    # Inputs
    # -------------------------------------------------------------------
    def handle_accelerometer(self, x, y, z, timestamp=None):
        self.signal_processor.handle_event(x, y, z, timestamp)
        self.manual_trigger.handle_event(x, y, z, timestamp)

    def handle_loudness(self, decibel, timestamp=None):
        self.scream_detector.handle_reading(decibel, timestamp)

    def long_press(self):
        self.manual_trigger.fire_trigger()

    # -------------------------------------------------------------------
    # Auto safety toggle
    # -------------------------------------------------------------------
    def set_auto_safety(self, enabled):
        """
        Auto safety ON starts the automatic detectors and disables shake
        detection; OFF stops them and cancels any pending countdown.
        Each component is switched independently so one failure does not
        leave the others half-configured.
        """
        self.auto_safety = enabled
        self.manual_trigger.set_shake_enabled(not enabled)

        if enabled:
            self.signal_processor.start()
            self.fall_detector.enable()
            self.countdown.enable()
            try:
                self.scream_detector.enable()
            except Exception as e:
                logger.error(f"Error enabling scream detector: {e}")
            logger.info("Auto Safety ON")
        else:
            self.signal_processor.stop()
            self.fall_detector.disable()
            self.scream_detector.disable()
            self.coordinator.cancel_all()
            self.countdown.disable()
            logger.info("Auto Safety OFF")

    # -------------------------------------------------------------------
    # Event routing
    # -------------------------------------------------------------------
    def _baseline(self):
        return self.signal_processor.last_magnitude or 0.0

    def _on_sample(self, sample):
        if sample.magnitude > 1.0:
            logger.debug(f"sample={sample.magnitude:.2f} at {sample.timestamp:.2f}")

    def _on_fall(self, timestamp):
        if not self.auto_safety:
            logger.info("Auto Safety OFF: ignoring automated fall event")
            return
        self.coordinator.on_fall_detected(baseline_magnitude=self._baseline())

    def _on_scream(self, event):
        if not self.auto_safety:
            logger.info("Auto Safety OFF: ignoring automated scream event")
            return
        self.coordinator.on_scream_detected(baseline_magnitude=self._baseline())

    def _on_outcome(self, alert_type, trigger, outcome):
        if outcome is ConfirmationOutcome.SENT:
            print(f"\n*** ALERT SENT: {alert_type.upper()} ({trigger}) ***\n")
        else:
            print(f"\n[*] Alert cancelled: {alert_type} ({trigger})\n")

    def _on_send_alert(self):
        print("\n*** ALERT SENT (confirmation unavailable) ***\n")

    def status(self):
        """
        Get current system status for monitoring
        """
        return {
            "auto_safety": self.auto_safety,
            "gate_active": self.gate.is_active(),
            "countdown_pending": self.countdown.is_pending,
            "fall_detector_enabled": self.fall_detector.is_enabled,
            "fall_awaiting_inactivity": self.fall_detector.is_awaiting_inactivity,
            "scream_detector_enabled": self.scream_detector.is_enabled,
            "scream_model": self.scream_detector.uses_model,
            "shake_enabled": self.manual_trigger.is_shake_enabled,
            "recent_screams": len(self.coordinator.recent_scream_times),
            "alerts_recorded": len(self.alert_log.get_action_history()),
            "audio_buffer_fill": self.audio.get_buffer_fill_percentage() if self.audio else None,
        }


# -------------------------------------------------------------------
# Commands
# -------------------------------------------------------------------
def _load_scorer(model_path):
    """
    Load the scream model; without it the detector runs on loudness alone
    """
    from .engine.inference import ScreamScorer

    scorer = ScreamScorer(model_path)
    try:
        scorer.load_model()
    except FileNotFoundError as e:
        logger.warning(f"{e} - scream confirmation falls back to loudness only")
        return None
    return scorer


async def run_live(args):
    from .audio_capture import AudioCapture
    from .replay import replay_recording

    scheduler = LoopScheduler()
    audio = AudioCapture(scheduler)
    scorer = _load_scorer(args.model)
    app = SafeguardApp(scheduler, audio=audio, scorer=scorer, log_file=args.log_file,
                       trigger_db=args.trigger_db, cooldown=args.cooldown)

    print("\n[*] Listening for audio input...")
    print("[*] Press Ctrl+C to stop\n")
    app.set_auto_safety(True)
    try:
        if args.motion_csv:
            await replay_recording(app, args.motion_csv, speed=args.speed)
        while True:
            await asyncio.sleep(1)
    finally:
        app.set_auto_safety(False)
        if scorer is not None:
            scorer.close()


async def run_replay(args):
    from .replay import replay_recording

    scheduler = LoopScheduler()
    app = SafeguardApp(scheduler, log_file=args.log_file, trigger_db=args.trigger_db,
                       cooldown=args.cooldown)
    app.set_auto_safety(True)
    await replay_recording(app, args.recording, speed=args.speed)
    # Let pending countdowns and confirmations play out
    await asyncio.sleep(args.settle)
    await scheduler.drain()
    app.set_auto_safety(False)
    print(f"Recorded alerts: {len(app.alert_log.get_action_history())}")
    return app.alert_log.get_action_history()


def benchmark_model(model_path):
    from .engine.inference import ScreamScorer

    print("📊 Benchmarking Scream Model")
    print("============================")
    scorer = ScreamScorer(model_path)
    scorer.load_model()
    latency_results = scorer.benchmark_latency(num_runs=100)

    print(f"Average latency: {latency_results['average_latency_ms']:.2f} ms")
    print(f"Max latency: {latency_results['max_latency_ms']:.2f} ms")
    print(f"Meets target (<100ms): {'✅' if latency_results['meets_target'] else '❌'}")

    model_info = scorer.get_model_info()
    print(f"Input shape: {model_info['input_shape']}")
    print(f"Quantized: {'✅' if model_info.get('quantized') else '❌'}")
    scorer.close()
    return latency_results


# -------------------------------------------------------------------
# Entry point
# -------------------------------------------------------------------
def main(argv=None):
    parser = argparse.ArgumentParser(description="SafeGuard personal-safety alerting engine")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(sub):
        sub.add_argument("--log-file", default=LOG_FILE, help=f"Alert log (default: {LOG_FILE})")
        sub.add_argument("--trigger-db", type=float, default=SCREAM_TRIGGER_DB,
                         help=f"Scream prefilter threshold in dB (default: {SCREAM_TRIGGER_DB})")
        sub.add_argument("--cooldown", type=float, default=GATE_COOLDOWN_SECONDS,
                         help=f"Post-confirmation cooldown in seconds (default: {GATE_COOLDOWN_SECONDS})")
        sub.add_argument("--speed", type=float, default=1.0, help="Replay speed factor (default: 1.0)")

    run_parser = subparsers.add_parser("run", help="Live microphone detection")
    add_common(run_parser)
    run_parser.add_argument("--model", default=SCREAM_MODEL_PATH, help="TFLite scream model")
    run_parser.add_argument("--motion-csv", help="Recorded accelerometer data to replay alongside")

    replay_parser = subparsers.add_parser("replay", help="Replay a recorded CSV through the pipeline")
    add_common(replay_parser)
    replay_parser.add_argument("recording", help="CSV with t,x,y,z[,db] columns")
    replay_parser.add_argument("--settle", type=float, default=25.0,
                               help="Seconds to wait after the last row (default: 25)")

    bench_parser = subparsers.add_parser("benchmark", help="Benchmark the scream model latency")
    bench_parser.add_argument("--model", default=SCREAM_MODEL_PATH, help="TFLite scream model")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        if args.command == "run":
            asyncio.run(run_live(args))
        elif args.command == "replay":
            if not os.path.exists(args.recording):
                parser.error(f"recording not found: {args.recording}")
            asyncio.run(run_replay(args))
        elif args.command == "benchmark":
            benchmark_model(args.model)
    except KeyboardInterrupt:
        print("\n[*] Stopping...")
    except Exception as e:
        logger.error(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
