from fastapi import Request
from starlette.responses import Response
from starlette.staticfiles import StaticFiles


class StaticAssets:
    """Serves the front-end bundle; ``/`` resolves to ``index.html``."""

    def __init__(self, directory: str):
        self.directory = directory
        self.files = StaticFiles(directory=directory, html=True, check_dir=False)

    async def fetch(self, request: Request) -> Response:
        path = self.files.get_path(request.scope)
        return await self.files.get_response(path, request.scope)
