"""
Basic Locust load test for the GamePulse API.

Prereq: pip install -e ".[load]"

Run:
  locust -f scripts/load_test_locust.py --host=http://localhost:8000
  locust -f scripts/load_test_locust.py --host=http://localhost:8000 --users 50 --spawn-rate 5 --run-time 1m
"""
import random

from locust import HttpUser, task, between

GAMES = ["GTA5", "배틀그라운드", "League of Legends", "VALORANT", "메이플스토리", "Minecraft"]


class GamePulseUser(HttpUser):
    wait_time = between(0.5, 1.5)

    def on_start(self):
        r = self.client.get("/health")
        if r.status_code != 200:
            raise Exception("Health check failed")

    @task(1)
    def health(self):
        self.client.get("/health")

    @task(5)
    def game_summary(self):
        game = random.choice(GAMES)
        self.client.get(f"/v1/streaming/games/{game}", name="/v1/streaming/games/[game]")

    @task(3)
    def search(self):
        self.client.get(
            "/v1/streaming/search",
            params={"game": random.choice(GAMES), "limit": 20},
            name="/v1/streaming/search",
        )

    @task(2)
    def top_games(self):
        self.client.get("/v1/streaming/top-games")

    @task(2)
    def resolve(self):
        self.client.get("/v1/streaming/resolve", params={"name": random.choice(GAMES)}, name="/v1/streaming/resolve")
