import json


def save(client, document):
    return client.post(
        "/save",
        content=json.dumps(document),
        headers={"Content-Type": "application/json"},
    )


def has_cors_headers(response):
    return (
        response.headers.get("access-control-allow-origin") == "*"
        and response.headers.get("access-control-allow-headers") == "Content-Type"
    )
