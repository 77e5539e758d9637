import json

PASSWORD = "secret123"


async def register(client, username, role="owner", password=PASSWORD, **extra):
    return await client.post(
        "/api/auth/register",
        json={"username": username, "password": password, "role": role, **extra},
    )


async def login(client, username, password=PASSWORD) -> dict:
    """Log in and return Bearer headers. The cookie jar is cleared so tests stay explicit about identity."""
    resp = await client.post("/api/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {resp.json()['accessToken']}"}


async def register_and_login(client, username, role="owner", **extra) -> dict:
    resp = await register(client, username, role=role, **extra)
    assert resp.status_code == 201, resp.text
    return await login(client, username)


def property_form(**overrides) -> dict:
    form = {
        "name": "Casa com quintal",
        "description": "Tres quartos, perto do centro",
        "contact": "+5511999990000",
        "contactMethod": "whatsapp",
        "coords": json.dumps({"lat": -23.55, "lng": -46.63}),
        "transactionType": "Sell",
        "propertyType": "House",
        "salePrice": "350000",
        "neighborhood": "Centro",
    }
    form.update(overrides)
    return {k: v for k, v in form.items() if v is not None}


def image_file(name="photo.jpg", content_type="image/jpeg"):
    return ("imagens", (name, b"\xff\xd8\xff fake jpeg bytes", content_type))


async def create_property(client, headers, files=None, **overrides):
    return await client.post(
        "/api/imoveis",
        data=property_form(**overrides),
        files=files,
        headers=headers,
    )
