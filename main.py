# main.py
"""
SessionGuard – Behavioral Session Risk Monitor
Entry point for local demonstration.

Launches two concurrent processes:
1. FastAPI risk server (WebSocket /ws on port 8000)
2. Monitoring client that samples keystroke cadence and pointer jitter and
   streams them to the server, printing the live risk score

All components run in separate processes. Use Ctrl+C to terminate.
"""

import os
import sys

# Add project root to Python path
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import argparse
import logging
import multiprocessing
import time
import uuid

import requests

# ----------------------------------------------------------------------
# Configuration
# ----------------------------------------------------------------------

class Config:
    """Configuration settings for SessionGuard."""

    # Server settings
    SERVER_HOST = "127.0.0.1"
    SERVER_PORT = 8000
    WS_PATH = "/ws"

    # Client settings
    SESSION_TOKEN = None          # Generated per run when not given
    STATUS_INTERVAL = 5           # Print the latest risk every 5 seconds
    DURATION = 0                  # Seconds to monitor; 0 = until Ctrl+C

    # Demo mode (use synthetic events, no OS permissions needed)
    DEMO_MODE = False

    LOG_LEVEL = logging.INFO

    @classmethod
    def server_url(cls) -> str:
        return f"http://{cls.SERVER_HOST}:{cls.SERVER_PORT}"

    @classmethod
    def ws_url(cls) -> str:
        return f"ws://{cls.SERVER_HOST}:{cls.SERVER_PORT}{cls.WS_PATH}"


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-7s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def uvicorn_log_level(level: int) -> str:
    """Map a logging level to the name uvicorn expects."""
    return logging.getLevelName(level).lower()


# ----------------------------------------------------------------------
# 1. FastAPI Server Process
# ----------------------------------------------------------------------

def run_server(host: str, port: int, log_level: int = logging.INFO) -> None:
    """Start Uvicorn server for the FastAPI application."""
    configure_logging(log_level)

    import uvicorn
    from server.api import app

    print(f"[Server] Starting on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level(log_level))


# ----------------------------------------------------------------------
# 2. Monitoring Client Process
# ----------------------------------------------------------------------

def wait_for_server(server_url: str, attempts: int = 10) -> bool:
    """Poll the health endpoint until the server answers."""
    for _ in range(attempts):
        try:
            resp = requests.get(f"{server_url}/health", timeout=1)
            if resp.status_code == 200:
                return True
        except requests.exceptions.RequestException:
            pass
        time.sleep(1)
    return False


def run_client(
    ws_url: str,
    server_url: str,
    demo_mode: bool = False,
    session_token: str = None,
    duration: float = 0,
    log_level: int = logging.INFO,
) -> None:
    """
    Run the monitoring client.

    Args:
        demo_mode: If True, use synthetic event sources (no permissions needed).
                   If False, hook the real keyboard and mouse via pynput.
        session_token: Correlation token sent to the server.
        duration: Seconds to monitor before stopping; 0 runs until Ctrl+C.
    """
    configure_logging(log_level)

    from client.behavior_sampler import BehaviorSampler
    from client.interaction_listener import create_sources
    from client.session_monitor import SessionMonitor
    from client.telemetry_transport import TelemetryTransport

    mode_str = "DEMO MODE (synthetic events)" if demo_mode else "PRODUCTION MODE (real input)"
    print("\n" + "=" * 60)
    print(f"🚀 Starting SessionGuard Client in {mode_str}")
    print("=" * 60 + "\n")

    session_token = session_token or str(uuid.uuid4())
    print(f"[Client] Session token: {session_token}")

    print("[Client] Waiting for server...")
    if wait_for_server(server_url):
        print("[Client] ✅ Server is up")
    else:
        print("[Client] ⚠️  Server not responding - connecting anyway")

    key_source, pointer_source = create_sources(use_real=not demo_mode)
    sampler = BehaviorSampler(key_source, pointer_source)
    monitor = SessionMonitor(sampler, TelemetryTransport(ws_url), session_token)

    if monitor.start():
        print("[Client] ✅ Telemetry channel open")
    else:
        print("[Client] ❌ Telemetry channel unavailable - risk will not update")

    start_time = time.time()
    try:
        while sampler.active:
            if duration and time.time() - start_time >= duration:
                break
            time.sleep(Config.STATUS_INTERVAL)
            sample = sampler.sample
            risk_color = "🔴" if monitor.is_elevated else "🟢"
            print(f"{risk_color} [Client] Risk: {monitor.risk_score} ({monitor.risk_reason}) | "
                  f"Typing: {sample.typing_speed:.0f}ms | "
                  f"Jitter: {sample.mouse_jitter:.2f} | "
                  f"Reports: {monitor.reports_sent}")
        if not sampler.active:
            print("\n[Client] Channel closed - monitoring ended")
    except KeyboardInterrupt:
        print("\n\n[Client] Received shutdown signal")
    finally:
        monitor.stop()

        print("\n" + "=" * 60)
        print("📊 SESSION SUMMARY")
        print("=" * 60)
        print(f"Session token: {session_token}")
        print(f"Duration: {time.time() - start_time:.1f} seconds")
        print(f"Reports sent: {monitor.reports_sent}")
        print(f"Risk updates received: {monitor.updates_received}")
        print(f"Final risk: {monitor.risk_score} ({monitor.risk_reason})")
        print("=" * 60 + "\n")


# ----------------------------------------------------------------------
# 3. Main Orchestrator
# ----------------------------------------------------------------------

def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="SessionGuard Behavioral Risk Monitor")
    parser.add_argument("--demo", action="store_true",
                        help="Use synthetic input events (no permissions needed)")
    parser.add_argument("--host", default=Config.SERVER_HOST,
                        help=f"Server host (default: {Config.SERVER_HOST})")
    parser.add_argument("--port", type=int, default=Config.SERVER_PORT,
                        help=f"Server port (default: {Config.SERVER_PORT})")
    parser.add_argument("--token", default=None,
                        help="Session token to report under (default: random UUID)")
    parser.add_argument("--duration", type=float, default=0,
                        help="Seconds to monitor before exiting (default: until Ctrl+C)")
    parser.add_argument("--no-client", action="store_true",
                        help="Only run the risk server")
    parser.add_argument("--debug", action="store_true",
                        help="Enable debug logging")
    return parser.parse_args(argv)


def apply_arguments(args) -> None:
    """Copy parsed arguments onto Config."""
    Config.DEMO_MODE = args.demo
    Config.SERVER_HOST = args.host
    Config.SERVER_PORT = args.port
    Config.SESSION_TOKEN = args.token
    Config.DURATION = args.duration
    if args.debug:
        Config.LOG_LEVEL = logging.DEBUG


if __name__ == "__main__":
    args = parse_arguments()
    apply_arguments(args)

    print("\n" + "=" * 70)
    print("🛡️  SESSIONGUARD - Behavioral Session Risk Monitor")
    print("=" * 70)
    print(f"Mode: {'DEMO (synthetic events)' if Config.DEMO_MODE else 'PRODUCTION (real input)'}")
    print(f"Server: {Config.server_url()}  WebSocket: {Config.ws_url()}")
    print("=" * 70 + "\n")

    try:
        multiprocessing.set_start_method("spawn", force=True)
    except RuntimeError:
        pass

    server_process = multiprocessing.Process(
        target=run_server,
        args=(Config.SERVER_HOST, Config.SERVER_PORT, Config.LOG_LEVEL),
        name="Server",
    )
    client_process = None
    if not args.no_client:
        client_process = multiprocessing.Process(
            target=run_client,
            kwargs={
                "ws_url": Config.ws_url(),
                "server_url": Config.server_url(),
                "demo_mode": Config.DEMO_MODE,
                "session_token": Config.SESSION_TOKEN,
                "duration": Config.DURATION,
                "log_level": Config.LOG_LEVEL,
            },
            name="Client",
        )

    print("[Main] Starting SessionGuard components...")
    server_process.start()
    time.sleep(2)  # Give server time to start
    if client_process:
        client_process.start()

    print("\n[Main] ✅ All components launched")
    print(f"[Main] 🖥️  Server: {Config.server_url()}")
    print("[Main] Press Ctrl+C to stop all components\n")

    try:
        if client_process:
            client_process.join()
            server_process.terminate()
        server_process.join()

    except KeyboardInterrupt:
        print("\n\n[Main] ⚡ Shutdown signal received")

        for proc in [client_process, server_process]:
            if proc and proc.is_alive():
                print(f"[Main] Terminating {proc.name}...")
                proc.terminate()
                proc.join(timeout=3.0)

        print("[Main] ✅ Shutdown complete")
        sys.exit(0)
