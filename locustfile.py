import os
from datetime import datetime

from locust import FastHttpUser, between, task


def get_log_file_name():
    policy = os.environ.get("LOAD_BALANCER_CLASS")
    if policy:
        return f"logs/{policy}_locust_backend_distribution.log"
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"logs/locust_backend_distribution_{timestamp}.log"


class GreetingUser(FastHttpUser):
    """
    Hits the routing layer and records which backend answered each request,
    so the round-robin split and failover can be checked after the run.
    """

    wait_time = between(1, 5)

    def on_start(self):
        os.makedirs("logs", exist_ok=True)
        self.log_file = get_log_file_name()

    @task
    def fetch_message(self):
        with self.client.get("/api/message", catch_response=True) as response:
            if response.status_code == 503:
                response.failure("no healthy backend")
                backend_id = "unavailable"
            elif response.headers is not None:
                backend_id = response.headers.get("X-Backend-Id", "unknown")
            else:
                backend_id = "unknown"
            with open(self.log_file, "a") as f:
                f.write(backend_id + "\n")
