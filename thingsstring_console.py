import logging
import os
import threading
import time

from config_loader import API_PASSWORD_ENV_VAR, load_config
from dashboard.agent import dashboard_agent
from devices.agent import device_list_agent
from logger_config import setup_logging
from runtime.device_session import DeviceListMonitor
from shared_state import build_shared_data
from thingsstring_api import ThingsStringAPI, ThingsStringAPIError


def build_api_client(config, password=None):
    api = ThingsStringAPI(
        base_url=config["API_BASE_URL"],
        email=config.get("API_EMAIL"),
        token=config.get("API_TOKEN"),
        timeout_s=config["API_REQUEST_TIMEOUT_S"],
    )
    if password:
        api.set_password(password)
        # A preset token stays in use until the server rejects it.
        api.set_token(config.get("API_TOKEN"))
    return api


def build_initial_shared_data(config, api):
    """Create the runtime shared_data contract."""
    return build_shared_data(
        api=api,
        device_list_monitor=DeviceListMonitor(config, api),
        active_device_session=None,
        schedule_service=None,
    )


def build_agent_threads(config, shared_data):
    return [
        threading.Thread(target=device_list_agent, args=(config, shared_data), daemon=True),
        threading.Thread(target=dashboard_agent, args=(config, shared_data), daemon=True),
    ]


def main():
    """Director agent: load config, initialize shared runtime, and start agents."""
    config = load_config("config.yaml")
    api = build_api_client(config, password=os.environ.get(API_PASSWORD_ENV_VAR))
    shared_data = build_initial_shared_data(config, api)

    setup_logging(config, shared_data)
    logging.info("Director agent starting the console (API %s).", config["API_BASE_URL"])

    if not api.is_authenticated():
        if config.get("API_EMAIL") and os.environ.get(API_PASSWORD_ENV_VAR):
            try:
                api.login()
            except ThingsStringAPIError as exc:
                logging.error("Director: initial login failed: %s", exc)
        else:
            logging.warning(
                "Director: no API token and no email/%s; requests go out unauthenticated.",
                API_PASSWORD_ENV_VAR,
            )

    threads = []
    try:
        threads = build_agent_threads(config, shared_data)

        for thread in threads:
            thread.start()

        logging.info("All agents started.")

        while not shared_data["shutdown_event"].is_set():
            time.sleep(1)

    except KeyboardInterrupt:
        logging.info("Keyboard interrupt received. Shutting down...")
    except Exception as exc:
        logging.error("An unexpected error occurred in the director: %s", exc)
    finally:
        logging.info("Director initiating shutdown...")
        shared_data["shutdown_event"].set()

        for thread in threads:
            thread.join(timeout=10)

        logging.info("Console shutdown complete.")


if __name__ == "__main__":
    main()
