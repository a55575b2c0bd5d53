import logging
import time

from runtime.device_session import get_active_device_session


def device_list_agent(config, shared_data):
    """Run the device list poller until shutdown, then stop any open device session."""
    logging.info("Device list agent started.")
    monitor = shared_data["device_list_monitor"]
    monitor.start()

    try:
        while not shared_data["shutdown_event"].is_set():
            time.sleep(1)
    finally:
        monitor.stop()
        session = get_active_device_session(shared_data)
        if session is not None:
            session.stop()
        logging.info("Device list agent stopped.")
