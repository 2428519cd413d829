#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
ASGI application for any ASGI server, e.g.:

    uvicorn examples.asgi_route.quickstart:app --port 3000

Author: stepserve contributors
"""

from stepserve import StepFunction
from stepserve.protocols.asgi import serve


async def resize_image(event, steps):
    data = event.get("data", {})
    return {"url": data.get("url"), "width": data.get("width", 256)}


def on_register(record):
    print("registered {0} function(s), hash {1}".format(record["functions"], record["hash"]))


app = serve(
    "Image Service",
    [StepFunction("resize image", resize_image, event="images/uploaded")],
    on_register=on_register,
)
