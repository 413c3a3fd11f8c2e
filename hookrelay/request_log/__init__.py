"""Request logging: timing, record building, ASGI middleware, stdlib bridge."""
