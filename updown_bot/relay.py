"""
Relay server for the Polymarket GraphQL API.

Browsers cannot query the Gamma API directly because of cross-origin rules,
so this small Flask app forwards one fixed GraphQL query and hands the
response back with a permissive CORS header.
"""

import logging
from typing import Optional

import requests
from flask import Flask, jsonify
from requests.exceptions import RequestException

from updown_bot.config import Config

# Configure module logger
logger = logging.getLogger(__name__)

MARKET_QUERY = """
query GetMarketBySlug($slug: String!) {
    marketBySlug(slug: $slug) {
        id, question, slug, outcomes { id, index, title, ticker, price },
        strikePrice, referenceAsset, clobTokenId
    }
}
"""


def create_app(upstream_url: Optional[str] = None, slug: Optional[str] = None) -> Flask:
    """
    Build the relay application.

    Args:
        upstream_url: GraphQL endpoint. If None, uses Config.GAMMA_GRAPHQL_URL.
        slug: Market slug to query. If None, uses Config.MARKET_SLUG.

    Returns:
        Flask app exposing GET /api/market-data
    """
    app = Flask(__name__)
    app.config["UPSTREAM_URL"] = upstream_url or Config.GAMMA_GRAPHQL_URL
    app.config["MARKET_SLUG"] = slug or Config.MARKET_SLUG

    @app.after_request
    def add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.route("/api/market-data")
    def market_data():
        graphql_query = {
            "query": MARKET_QUERY,
            "variables": {"slug": app.config["MARKET_SLUG"]},
        }

        try:
            response = requests.post(
                app.config["UPSTREAM_URL"],
                json=graphql_query,
                headers={"Content-Type": "application/json"},
                timeout=Config.API_TIMEOUT,
            )
            response.raise_for_status()
            return jsonify(response.json())

        except (RequestException, ValueError) as e:
            logger.error(f"Error fetching from Polymarket API: {e}")
            return jsonify({"error": "Failed to fetch data from Polymarket API"}), 500

    return app


def run_relay(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Serve the relay until interrupted."""
    host = host or Config.RELAY_HOST
    port = port or Config.RELAY_PORT
    logger.info(f"Polymarket data relay running at http://{host}:{port}")
    create_app().run(host=host, port=port)
