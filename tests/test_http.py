"""Tests for HttpClient against an in-process aiohttp server."""

import asyncio
import json

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer as AppServer

from mcclient.auth.errors import DecodeError, RemoteRejectedError, TransportError
from mcclient.auth.http import MAX_ERROR_BODY, HttpClient


async def echo_form(request):
    form = await request.post()
    return web.json_response({"form": dict(form), "contract": request.headers.get("x-xbl-contract-version")})


async def echo_json(request):
    body = await request.json()
    return web.json_response({"json": body, "contract": request.headers.get("x-xbl-contract-version")})


async def profile(request):
    return web.json_response({"auth": request.headers.get("Authorization")})


async def created(request):
    return web.json_response({"Token": "abc"}, status=201)


async def rejected(request):
    return web.Response(status=401, text="x" * 1000)


async def not_json(request):
    return web.Response(text="<html>sign in</html>", content_type="text/html")


async def json_list(request):
    return web.Response(text=json.dumps([1, 2, 3]), content_type="application/json")


async def bad_bytes(request):
    return web.Response(body=b'{"Token": "\xff\xfe"}', content_type="application/json", charset="utf-8")


async def rejected_bad_bytes(request):
    return web.Response(status=400, body=b"error \xff\xfe", content_type="text/plain", charset="utf-8")


async def slow(request):
    await asyncio.sleep(1)
    return web.json_response({})


def build_app() -> web.Application:
    app = web.Application()
    app.router.add_post("/form", echo_form)
    app.router.add_post("/json", echo_json)
    app.router.add_get("/profile", profile)
    app.router.add_post("/created", created)
    app.router.add_post("/rejected", rejected)
    app.router.add_get("/not-json", not_json)
    app.router.add_get("/list", json_list)
    app.router.add_get("/bad-bytes", bad_bytes)
    app.router.add_post("/rejected-bad-bytes", rejected_bad_bytes)
    app.router.add_get("/slow", slow)
    return app


class TestHttpClient:
    @pytest.mark.asyncio
    async def test_success_paths(self):
        server = AppServer(build_app())
        await server.start_server()
        try:
            async with aiohttp.ClientSession() as session:
                http = HttpClient(session)

                data = await http.post_form(str(server.make_url("/form")), {"grant_type": "refresh_token"})
                assert data["form"] == {"grant_type": "refresh_token"}

                data = await http.post_json(
                    str(server.make_url("/json")), {"TokenType": "JWT"},
                    headers={"x-xbl-contract-version": "1"},
                )
                assert data == {"json": {"TokenType": "JWT"}, "contract": "1"}

                data = await http.get_json(str(server.make_url("/profile")), headers={"Authorization": "Bearer t"})
                assert data == {"auth": "Bearer t"}

                assert await http.post_json(str(server.make_url("/created")), {}) == {"Token": "abc"}
        finally:
            await server.close()

    @pytest.mark.asyncio
    async def test_error_mapping(self):
        server = AppServer(build_app())
        await server.start_server()
        try:
            async with aiohttp.ClientSession() as session:
                http = HttpClient(session)

                with pytest.raises(RemoteRejectedError) as exc_info:
                    await http.post_json(str(server.make_url("/rejected")), {})
                assert exc_info.value.status == 401
                assert len(exc_info.value.body) == MAX_ERROR_BODY

                with pytest.raises(DecodeError):
                    await http.get_json(str(server.make_url("/not-json")))

                with pytest.raises(DecodeError):
                    await http.get_json(str(server.make_url("/list")))

                with pytest.raises(DecodeError):
                    await http.get_json(str(server.make_url("/bad-bytes")))

                with pytest.raises(RemoteRejectedError) as exc_info:
                    await http.post_json(str(server.make_url("/rejected-bad-bytes")), {})
                assert exc_info.value.body.startswith("error ")
        finally:
            await server.close()

    @pytest.mark.asyncio
    async def test_timeout_is_transport_error(self):
        server = AppServer(build_app())
        await server.start_server()
        try:
            timeout = aiohttp.ClientTimeout(total=0.2)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                with pytest.raises(TransportError):
                    await HttpClient(session).get_json(str(server.make_url("/slow")))
        finally:
            await server.close()

    @pytest.mark.asyncio
    async def test_connection_refused_is_transport_error(self):
        server = AppServer(build_app())
        await server.start_server()
        url = str(server.make_url("/profile"))
        await server.close()

        async with aiohttp.ClientSession() as session:
            with pytest.raises(TransportError):
                await HttpClient(session).get_json(url)
