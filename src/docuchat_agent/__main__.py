import sys

import uvicorn
from dotenv import load_dotenv
from loguru import logger

from docuchat_agent.app_config import load_json_config, parse_app_config, resolve_runtime_env
from docuchat_agent.bootstrap import bootstrap_runtime
from docuchat_agent.server import create_app
from docuchat_agent.system_prompt import APP_NAME


def run() -> None:
    load_dotenv()

    app_config = parse_app_config(load_json_config())
    env = resolve_runtime_env(app_config.provider_name)

    try:
        runtime = bootstrap_runtime(app_config, env)
    except ValueError as ex:
        logger.error(str(ex))
        sys.exit(1)

    logger.info(f"{APP_NAME} starting on http://{app_config.host}:{app_config.port}")
    logger.info(f"Provider: {app_config.provider_name} ({app_config.model})")
    logger.info(f"Tools: {', '.join(runtime.agent.tool_names) or 'none'}")
    for description in runtime.log_descriptions:
        logger.info(f"Logging to {description}")

    try:
        uvicorn.run(
            create_app(runtime),
            host=app_config.host,
            port=app_config.port,
            log_config=None,
            log_level=app_config.log_level.lower(),
        )
    finally:
        if runtime.memory_store is not None:
            runtime.memory_store.close()


if __name__ == "__main__":
    run()
