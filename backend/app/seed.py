"""Sample Bangalore routes, stops and buses for development databases."""

import logging

from sqlalchemy import text

logger = logging.getLogger(__name__)

SAMPLE_ROUTES = [
    {"id": "route-1", "name": "Route A: Airport Express", "description": "Direct route to international airport"},
    {"id": "route-2", "name": "Route B: East Terminal", "description": "Service to east bus terminal"},
    {"id": "route-3", "name": "Route C: North Park", "description": "Service to north entrance"},
    {"id": "route-4", "name": "Circular D: Downtown Loop", "description": "Circular route in downtown area"},
    {"id": "route-5", "name": "Express E: Airport Fast", "description": "Express airport service without stops"},
]

# (route_id, sequence_order, name, lat, lon)
SAMPLE_STOPS = [
    ("route-1", 1, "Silk Board", 12.9352, 77.6245),
    ("route-1", 2, "Koramangala", 12.9355, 77.6250),
    ("route-1", 3, "Jayanagar", 12.9400, 77.6200),
    ("route-1", 4, "Central Station", 12.9716, 77.5946),
    ("route-1", 5, "Airport Road", 13.1939, 77.7068),
    ("route-2", 1, "MG Road", 12.9698, 77.6009),
    ("route-2", 2, "Shivajinagar", 12.9760, 77.5993),
    ("route-2", 3, "Cantonment Station", 12.9770, 77.6050),
    ("route-2", 4, "East Terminal", 12.9800, 77.6150),
    ("route-3", 1, "North Gate", 13.0060, 77.5700),
    ("route-3", 2, "Whitefield", 12.9698, 77.7499),
    ("route-3", 3, "ITPL North", 12.9750, 77.7550),
    ("route-3", 4, "North Park", 12.9804, 77.6050),
    ("route-4", 1, "Vidhana Soudha", 12.9819, 77.5919),
    ("route-4", 2, "Cubbon Park", 12.9716, 77.5946),
    ("route-4", 3, "City Center", 12.9720, 77.6115),
    ("route-4", 4, "Vidhana Soudha", 12.9819, 77.5919),
    ("route-5", 1, "City Center", 12.9720, 77.6115),
    ("route-5", 2, "Airport Road", 13.1939, 77.7068),
]

SAMPLE_VEHICLES = [
    {"id": "bus-1", "route_id": "route-1", "bus_number": "KA-01-A-1001", "destination": "Bangalore Airport",
     "ticket_price": 50, "lat": 12.9716, "lon": 77.5946, "speed": 35, "status": "Running"},
    {"id": "bus-2", "route_id": "route-2", "bus_number": "KA-01-B-1002", "destination": "East Terminal",
     "ticket_price": 30, "lat": 12.9680, "lon": 77.5900, "speed": 28, "status": "Running"},
    {"id": "bus-3", "route_id": "route-3", "bus_number": "KA-01-C-1003", "destination": "North Park",
     "ticket_price": 40, "lat": 12.9800, "lon": 77.6000, "speed": 32, "status": "Running"},
    {"id": "bus-4", "route_id": "route-4", "bus_number": "KA-01-D-1004", "destination": "Downtown Loop",
     "ticket_price": 20, "lat": 12.9650, "lon": 77.5850, "speed": 22, "status": "Stopped"},
    {"id": "bus-5", "route_id": "route-5", "bus_number": "KA-01-E-1005", "destination": "Bangalore Airport",
     "ticket_price": 60, "lat": 12.9740, "lon": 77.5985, "speed": 45, "status": "Running"},
    {"id": "bus-6", "route_id": "route-1", "bus_number": "KA-01-A-1006", "destination": "Bangalore Airport",
     "ticket_price": 50, "lat": 12.9600, "lon": 77.5800, "speed": 38, "status": "Running"},
]


async def seed_sample_data(session_factory) -> bool:
    """Insert the sample fleet if the vehicles table is empty.

    Returns True when rows were written.
    """
    async with session_factory() as session:
        count = (await session.execute(text("SELECT COUNT(*) FROM vehicles"))).scalar_one()
        if count:
            logger.info("Vehicles table has %d rows - skipping sample data", count)
            return False

        for r in SAMPLE_ROUTES:
            await session.execute(
                text("""
                    INSERT INTO routes (id, name, description)
                    VALUES (:id, :name, :description)
                    ON CONFLICT (id) DO NOTHING
                """),
                r,
            )
        for route_id, order, name, lat, lon in SAMPLE_STOPS:
            await session.execute(
                text("""
                    INSERT INTO stops (route_id, name, lat, lon, sequence_order)
                    VALUES (:rid, :name, :lat, :lon, :ord)
                    ON CONFLICT ON CONSTRAINT uq_stop_route_order DO NOTHING
                """),
                {"rid": route_id, "name": name, "lat": lat, "lon": lon, "ord": order},
            )
        for v in SAMPLE_VEHICLES:
            await session.execute(
                text("""
                    INSERT INTO vehicles
                        (id, route_id, bus_number, destination, ticket_price, lat, lon, speed, status)
                    VALUES (:id, :route_id, :bus_number, :destination, :ticket_price,
                            :lat, :lon, :speed, :status)
                    ON CONFLICT (id) DO NOTHING
                """),
                v,
            )
        await session.commit()

    logger.info(
        "Seeded %d routes, %d stops, %d vehicles",
        len(SAMPLE_ROUTES), len(SAMPLE_STOPS), len(SAMPLE_VEHICLES),
    )
    return True
