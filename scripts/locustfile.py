from locust import HttpUser, task, between
import json, random

# Conversations as the chat page sends them: full history, newest turn last
CONVERSATIONS = [
    [{"role": "user", "content": "你好！今天适合去爬山吗？"}],
    [{"role": "user", "content": "17 乘以 24 等于多少？请逐位计算。"}],
    [
        {"role": "user", "content": "Recommend a book for a long train ride."},
        {"role": "assistant", "content": "How about 'The Remains of the Day' by Kazuo Ishiguro?"},
        {"role": "user", "content": "Something shorter, please."},
    ],
    [
        {"role": "system", "content": "Answer in one sentence."},
        {"role": "user", "content": "Why is the sky blue?"},
    ],
]

class ChatUser(HttpUser):
    wait_time = between(0.2, 1.0)

    @task
    def chat(self):
        payload = {"messages": random.choice(CONVERSATIONS)}
        headers = {"Content-Type":"application/json"}
        # consume the whole stream so latency covers the full completion
        with self.client.post("/api/chat", data=json.dumps(payload), headers=headers,
                              stream=True, catch_response=True) as r:
            for _ in r.iter_content(chunk_size=None):
                pass
            if r.status_code != 200:
                r.failure(f"status {r.status_code}")
