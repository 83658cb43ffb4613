"""A small İzmir GTFS feed used across the test suite."""

from pathlib import Path

ROUTES = (
    "route_id,route_short_name,route_long_name,route_type,route_color\n"
    "M1,M1,Fahrettin Altay - Evka 3,1,D61C1F\n"
    "T1,T1,Karşıyaka Tramvayı,0,00A651\n"
    "B5,5,Konak - Bornova,3,\n"
    "B15,15,Konak - Buca,3,\n"
    "F1,,Konak - Karşıyaka Vapuru,4,\n"
)

STOPS = (
    "stop_id,stop_name,stop_lat,stop_lon,location_type,parent_station\n"
    "KONAK,Konak,38.4189,27.1287,1,\n"
    "metro_konak,Konak,38.4189,27.1287,0,KONAK\n"
    "tram_konak,Konak,38.4193,27.1283,0,\n"
    "bus_konak,Konak Çarşı,38.4185,27.1291,0,\n"
    "ferry_konak,Konak İskelesi,38.4195,27.1265,0,\n"
    "IZD2,Karşıyaka İskele,38.4555,27.1180,0,\n"
    "metro_cankaya,Çankaya,38.4230,27.1360,0,\n"
    "metro_basmane,Basmane,38.4220,27.1450,0,\n"
    "metro_evka3,Evka 3,38.4690,27.2300,0,\n"
    "tram_alsancak,Alsancak Gar,38.4390,27.1480,0,\n"
    "bus_bornova9,Bornova 9,38.4610,27.2150,0,\n"
    "bus_bornova10,Bornova 10,38.4620,27.2160,0,\n"
)

CALENDAR = (
    "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date\n"
    "WD,1,1,1,1,1,0,0,20240101,20241231\n"
    "WE,0,0,0,0,0,1,1,20240101,20241231\n"
)

# 2024-01-15 (a Monday) runs the weekend timetable
CALENDAR_DATES = "service_id,date,exception_type\nWD,20240115,2\nWE,20240115,1\n"

TRIPS = (
    "trip_id,route_id,service_id,trip_headsign,direction_id\n"
    "M1_WD_1,M1,WD,Evka 3,0\n"
    "M1_WD_2,M1,WD,Evka 3,0\n"
    "M1_WD_3,M1,WD,Evka 3,0\n"
    "M1_WD_4,M1,WD,Evka 3,0\n"
    "M1_WE_1,M1,WE,Evka 3,0\n"
    "T1_WD_1,T1,WD,Alsancak,0\n"
    "B5_WD_1,B5,WD,Bornova,0\n"
    "B15_WD_1,B15,WD,Buca,0\n"
)

STOP_TIMES = (
    "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
    "M1_WD_1,08:00:00,08:00:00,metro_konak,1\n"
    "M1_WD_1,08:03:00,08:03:00,metro_cankaya,2\n"
    "M1_WD_1,08:06:00,08:06:00,metro_basmane,3\n"
    "M1_WD_1,08:30:00,08:30:00,metro_evka3,4\n"
    "M1_WD_2,08:05:00,08:05:00,metro_konak,1\n"
    "M1_WD_2,08:08:00,08:08:00,metro_cankaya,2\n"
    "M1_WD_2,08:11:00,08:11:00,metro_basmane,3\n"
    "M1_WD_2,08:35:00,08:35:00,metro_evka3,4\n"
    "M1_WD_3,8:10:00,8:10:00,metro_konak,1\n"
    "M1_WD_3,8:13:00,8:13:00,metro_cankaya,2\n"
    "M1_WD_3,8:16:00,8:16:00,metro_basmane,3\n"
    "M1_WD_3,8:40:00,8:40:00,metro_evka3,4\n"
    "M1_WD_4,25:10:00,25:10:00,metro_konak,1\n"
    "M1_WD_4,25:13:00,25:13:00,metro_cankaya,2\n"
    "M1_WD_4,25:16:00,25:16:00,metro_basmane,3\n"
    "M1_WD_4,25:40:00,25:40:00,metro_evka3,4\n"
    "M1_WE_1,08:07:00,08:07:00,metro_konak,1\n"
    "M1_WE_1,08:10:00,08:10:00,metro_cankaya,2\n"
    "M1_WE_1,08:13:00,08:13:00,metro_basmane,3\n"
    "M1_WE_1,08:37:00,08:37:00,metro_evka3,4\n"
    "T1_WD_1,08:02:00,08:02:00,tram_konak,1\n"
    "T1_WD_1,08:12:00,08:12:00,tram_alsancak,2\n"
    "B5_WD_1,07:50:00,07:50:00,bus_bornova9,1\n"
    "B5_WD_1,08:00:00,08:00:00,bus_bornova10,2\n"
    "B15_WD_1,08:20:00,08:20:00,bus_konak,1\n"
    "B15_WD_1,08:50:00,08:50:00,bus_bornova10,2\n"
)

FEED_FILES = {
    "routes.txt": ROUTES,
    "stops.txt": STOPS,
    "calendar.txt": CALENDAR,
    "calendar_dates.txt": CALENDAR_DATES,
    "trips.txt": TRIPS,
    "stop_times.txt": STOP_TIMES,
}


def write_feed(gtfs_dir: Path, **overrides: str | None) -> Path:
    """Write the sample feed, replacing or (with None) omitting files.

    Keyword names are file stems: write_feed(path, calendar=None).
    """
    gtfs_dir.mkdir(parents=True, exist_ok=True)
    for filename, content in FEED_FILES.items():
        content = overrides.get(filename.removesuffix(".txt"), content)
        if content is not None:
            (gtfs_dir / filename).write_text(content, encoding="utf-8")
    return gtfs_dir
