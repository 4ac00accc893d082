"""
app.api.offline_cache
~~~~~~~~~~~~~~~~~~~~~

``GET /sw.js`` —— 根据配置生成 Service Worker：安装时预取资源清单，
请求时优先读取缓存。
"""
from __future__ import annotations

import json

from fastapi import APIRouter
from fastapi.responses import Response

from app.core.settings import settings

router: APIRouter = APIRouter()

_SW_TEMPLATE: str = """\
const CACHE_NAME = {cache_name};
const PRECACHE = {assets};

self.addEventListener('install', e => {{
  e.waitUntil(caches.open(CACHE_NAME).then(cache => cache.addAll(PRECACHE)));
}});

self.addEventListener('fetch', e => {{
  e.respondWith(caches.match(e.request).then(res => res || fetch(e.request)));
}});
"""


def render_service_worker(cache_name: str, assets: list[str]) -> str:
    return _SW_TEMPLATE.format(cache_name=json.dumps(cache_name), assets=json.dumps(assets))


@router.get("/sw.js", include_in_schema=False)
async def service_worker() -> Response:
    body = render_service_worker(settings.OFFLINE_CACHE_NAME, settings.OFFLINE_CACHE_ASSETS)
    return Response(
        content=body,
        media_type="application/javascript",
        headers={"Cache-Control": "no-cache"},
    )
