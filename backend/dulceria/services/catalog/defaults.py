"""Default storefront catalog used to seed an empty products table."""

DEFAULT_PRODUCTS = [
    {
        "id": "dubai-chocolate",
        "name": "Dubai Chocolate Truffles",
        "price": 50,
        "batch": 25,
        "description": (
            "A rich pistachio cream filling, coated in silky milk chocolate and "
            "topped with a pistachio crunch and drizzle."
        ),
        "is_custom": False,
        "category": "truffle",
        "image": "/dubai_chocolate.png",
        "trending": True,
    },
    {
        "id": "cookie-butter",
        "name": "Cookie Butter Truffles",
        "price": 50,
        "batch": 25,
        "description": (
            "Spiced cookie filling wrapped in smooth white chocolate, finished "
            "with Biscoff crumb topping."
        ),
        "is_custom": False,
        "category": "truffle",
        "image": "/cookie_butter.png",
        "trending": False,
    },
    {
        "id": "strawberry-shortcake",
        "name": "Strawberry Shortcake Truffles",
        "price": 50,
        "batch": 25,
        "description": (
            "A rich strawberry-infused cheesecake filling enrobed in smooth pink "
            "white chocolate topped with a strawberry crumble."
        ),
        "is_custom": False,
        "category": "truffle",
        "image": "/strawberry_shortcake.png",
        "trending": False,
    },
    {
        "id": "cookies-cream",
        "name": "Cookies & Cream Truffles",
        "price": 50,
        "batch": 25,
        "description": (
            "Classic cookies & cream filling enrobed in milk chocolate, finished "
            "with a white chocolate drizzle and Oreo crumble."
        ),
        "is_custom": False,
        "category": "truffle",
        "image": "/cookies_cream.png",
        "trending": False,
    },
    {
        "id": "red-velvet",
        "name": "Red Velvet Cookies",
        "price": 50,
        "batch": 25,
        "description": (
            "Deep red cocoa base mixed with white chocolate chips, crushed Oreo "
            "cookies, and a smooth cream cheese swirl."
        ),
        "is_custom": False,
        "category": "cookie",
        "image": "/red_velvet.png",
        "trending": False,
    },
    {
        "id": "snickerdoodle",
        "name": "Snickerdoodle Cookies",
        "price": 50,
        "batch": 25,
        "description": "Classic cinnamon-sugar dusting with soft, chewy center",
        "is_custom": False,
        "category": "cookie",
        "image": "/snickerdoodle.png",
        "trending": False,
    },
    {
        "id": "signature-cookies",
        "name": "Signature Cookies",
        "price": 50,
        "batch": 25,
        "description": (
            "Our signature brown butter cookies with premium chocolate and sea salt"
        ),
        "is_custom": False,
        "category": "cookie",
        "image": "/signature_cookies.png",
        "trending": False,
    },
    {
        "id": "chocolate-strawberries",
        "name": "Chocolate Covered Strawberries",
        "price": 50,
        "batch": 12,
        "description": (
            "Fresh strawberries dipped in rich chocolate with elegant drizzle "
            "and toppings."
        ),
        "is_custom": False,
        "category": "seasonal",
        "image": "/strawberries.jpg",
        "trending": True,
    },
    {
        "id": "pink-chocolate-cookies",
        "name": "Pink Chocolate Cookies",
        "price": 50,
        "batch": 25,
        "description": (
            "Soft-baked cookies with pink white chocolate chips and a touch of "
            "strawberry."
        ),
        "is_custom": False,
        "category": "seasonal",
        "image": "/pink-cookies.jpg",
        "trending": True,
    },
    {
        "id": "strawberry-truffles",
        "name": "Strawberry Truffles",
        "price": 50,
        "batch": 25,
        "description": "Strawberry center with milk chocolate on the outside.",
        "is_custom": False,
        "category": "seasonal",
        "image": "/strawberry-truffle.jpg",
        "trending": True,
    },
    {
        "id": "bespoke-diamond",
        "name": "Bespoke Creation",
        "price": 0,
        "batch": 0,
        "description": "Custom flavors crafted exclusively for you. Subject to approval.",
        "is_custom": True,
        "category": "custom",
        "image": "/bespoke_creation.png",
        "trending": False,
    },
]
