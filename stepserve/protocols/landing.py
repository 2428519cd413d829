#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Static landing page served on ``GET`` outside production.

The page fetches the introspection document from its own URL and lists the
functions that would be registered.

Author: stepserve contributors
"""

LANDING_PAGE_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>stepserve</title>
<style>
body { font-family: system-ui, sans-serif; margin: 2rem auto; max-width: 48rem; color: #1f2328; }
code { background: #f3f4f6; padding: 0.1rem 0.3rem; border-radius: 4px; }
li { margin: 0.25rem 0; }
.muted { color: #6b7280; }
</style>
</head>
<body>
<h1>stepserve</h1>
<p class="muted" id="summary">Loading function list&hellip;</p>
<ul id="functions"></ul>
<p>Send a <code>PUT</code> request to this URL to register these functions.</p>
<script>
(function () {
  var url = new URL(window.location.href);
  url.searchParams.set("introspect", "");
  fetch(url.toString())
    .then(function (res) { return res.json(); })
    .then(function (data) {
      var list = document.getElementById("functions");
      (data.functions || []).forEach(function (fn) {
        var item = document.createElement("li");
        item.textContent = fn.name + " (" + fn.id + ")";
        list.appendChild(item);
      });
      document.getElementById("summary").textContent =
        data.appName + ": " + (data.functions || []).length + " function(s), dev server " +
        data.devServerURL + (data.hasSigningKey ? ", signing key configured" : ", no signing key");
    })
    .catch(function (err) {
      document.getElementById("summary").textContent = "Could not load introspection data: " + err;
    });
})();
</script>
</body>
</html>
"""
