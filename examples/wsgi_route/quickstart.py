#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Serve two step functions from the standard library WSGI server.

Run it, then:
    curl http://127.0.0.1:3000/api/steps?introspect
    curl -X PUT http://127.0.0.1:3000/api/steps

Author: stepserve contributors
"""

import os
from wsgiref.simple_server import make_server

from stepserve import StepFunction, create_config
from stepserve.protocols.wsgi import serve

HOST = os.getenv("STEPSERVE_DEMO_HOST", "127.0.0.1")
PORT = int(os.getenv("STEPSERVE_DEMO_PORT", "3000"))


def greet(event, steps):
    who = event.get("data", {}).get("who", "world")
    return {"message": "hello {0}".format(who)}


async def nightly_report(event, steps):
    return {"rows": len(steps)}


class WSGIQuickstart:
    """
    Wires the demo functions into a WSGI app and serves it forever.
    """

    def build_app(self):
        return serve(
            "Demo App",
            [
                StepFunction("greet", greet, event="demo/greet"),
                StepFunction("nightly report", nightly_report, cron="0 3 * * *"),
            ],
            config=create_config(serve_path="/api/steps", log_level="debug"),
        )

    def run(self) -> None:
        with make_server(HOST, PORT, self.build_app()) as httpd:
            print("Serving step functions on http://{0}:{1}/api/steps".format(HOST, PORT))
            httpd.serve_forever()


if __name__ == "__main__":
    WSGIQuickstart().run()
