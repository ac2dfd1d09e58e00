import asyncio
import codecs

import pytest
from aiohttp import web

MASTER = (
    "#EXTM3U\n"
    '#EXT-X-MEDIA:TYPE=AUDIO,GROUP-ID="aud",NAME="English",URI="audio/en.m3u8"\n'
    '#EXT-X-STREAM-INF:BANDWIDTH=5000000,RESOLUTION=1920x1080,AUDIO="aud"\n'
    "high/index.m3u8\n"
)

MEDIA = (
    "#EXTM3U\n"
    "#EXT-X-TARGETDURATION:6\n"
    '#EXT-X-KEY:METHOD=AES-128,URI="key.bin"\n'
    "#EXTINF:6.0,\n"
    "seg001.ts\n"
    "\n"
    "#EXT-X-ENDLIST\n"
)

SEGMENT = bytes(range(256)) * 1200


async def master(request):
    return web.Response(text=MASTER, content_type="application/vnd.apple.mpegurl")


async def media(request):
    return web.Response(text=MEDIA, content_type="application/vnd.apple.mpegurl")


async def segment(request):
    return web.Response(body=SEGMENT, content_type="video/mp2t")


async def echo_headers(request):
    # headers come back as comment lines so the rewriter leaves them alone
    text = (
        "#EXTM3U\n"
        f"#X-REFERER:{request.headers.get('Referer', '')}\n"
        f"#X-USER-AGENT:{request.headers.get('User-Agent', '')}\n"
        f"#X-ACCEPT:{request.headers.get('Accept', '')}\n"
        "seg.ts"
    )
    return web.Response(text=text)


async def bom(request):
    return web.Response(body=codecs.BOM_UTF8 + b"#EXTM3U\n#EXTINF:4,\nseg001.ts\n",
                        content_type="application/vnd.apple.mpegurl")


async def redirect(request):
    raise web.HTTPFound("/b/index.m3u8")


async def slow(request):
    await asyncio.sleep(1)
    return web.Response(text="#EXTM3U")


@pytest.fixture
async def origin(aiohttp_server):
    app = web.Application()
    app.router.add_get("/a/master.m3u8", master)
    app.router.add_get("/a/index.m3u8", media)
    app.router.add_get("/b/index.m3u8", media)
    app.router.add_get("/a/seg001.ts", segment)
    app.router.add_get("/echo.m3u8", echo_headers)
    app.router.add_get("/a/bom.m3u8", bom)
    app.router.add_get("/redirect.m3u8", redirect)
    app.router.add_get("/slow.m3u8", slow)
    return await aiohttp_server(app)
