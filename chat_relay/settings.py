import os, yaml
from typing import Optional
from pydantic import BaseModel

DEFAULT_CONFIG_PATH = os.getenv("CONFIG_PATH", "configs/config.yaml")
EXAMPLE_CONFIG_PATH = "configs/config.example.yaml"

# https://developers.cloudflare.com/workers-ai/models/
MODEL_ID = "@cf/openai/gpt-oss-120b"

SYSTEM_PROMPT = (
    "你就是ChatGPT，一个由OpenAI训练的大型语言模型。在对话过程中，适应用户的语气和偏好。"
    "尝试匹配用户的氛围、语气以及他们说话的总体方式。您希望对话感觉自然。"
    "您通过回复所提供的信息、提出相关问题并表现出真正的好奇心来进行真实的对话。"
    "如果自然，请使用您了解的有关用户的信息来个性化您的回复并提出后续问题。"
    "不要在多阶段用户请求的每个步骤之间要求确认。但是，对于模棱两可的请求，您可以要求澄清（但要谨慎）。"
    "对于任何谜语、技巧问题、偏见测试、假设测试、刻板印象检查，您必须密切关注查询的确切措辞，"
    "并非常仔细地考虑以确保您得到正确的答案。您必须假设措辞与您以前可能听到的变体略有或对抗性不同。"
    "如果您认为某件事是“经典谜语”，您绝对必须事后猜测并仔细检查问题的各个方面。"
    "同样，对简单的算术问题要非常小心;不要依赖背诵的答案！"
    "研究表明，当你在回答之前没有一步一步地找出答案时，你几乎总是会犯算术错误。"
    "从字面上看，你做过的任何算术，无论多么简单，都应该逐位计算，以确保你给出正确的答案。"
)

class Server(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8787

class Provider(BaseModel):
    base_url: str = "https://api.cloudflare.com/client/v4"
    account_id: str = os.getenv("CF_ACCOUNT_ID", "")
    api_token: str = os.getenv("CF_API_TOKEN", "")
    model_id: str = os.getenv("MODEL_ID", MODEL_ID)
    max_tokens: int = 1024
    system_prompt: str = SYSTEM_PROMPT

class Gateway(BaseModel):
    # empty id = call Workers AI directly
    id: str = os.getenv("CF_AI_GATEWAY_ID", "")
    base_url: str = "https://gateway.ai.cloudflare.com/v1"
    skip_cache: bool = False
    cache_ttl: Optional[int] = 3600

class Timeouts(BaseModel):
    connect: float = 5.0
    read: float = 120.0

class Assets(BaseModel):
    directory: str = os.getenv("ASSETS_DIR", "public")

class Settings(BaseModel):
    server: Server = Server()
    provider: Provider = Provider()
    gateway: Gateway = Gateway()
    timeouts: Timeouts = Timeouts()
    assets: Assets = Assets()
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

# env var -> (section, field); applied after the YAML so the environment wins
ENV_OVERRIDES = {
    "CF_ACCOUNT_ID": ("provider", "account_id"),
    "CF_API_TOKEN": ("provider", "api_token"),
    "MODEL_ID": ("provider", "model_id"),
    "CF_AI_GATEWAY_ID": ("gateway", "id"),
    "ASSETS_DIR": ("assets", "directory"),
    "LOG_LEVEL": (None, "log_level"),
}

def apply_env(data: dict) -> dict:
    for var, (section, field) in ENV_OVERRIDES.items():
        value = os.getenv(var)
        if value is None:
            continue
        if section is None:
            data[field] = value
        else:
            data[section] = dict(data.get(section) or {}, **{field: value})
    return data

def load_settings(path: Optional[str] = None) -> Settings:
    path = path or os.getenv("CONFIG_PATH", DEFAULT_CONFIG_PATH)
    if not os.path.exists(path):
        # Try example
        path = EXAMPLE_CONFIG_PATH
    data = {}
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    return Settings(**apply_env(data))
