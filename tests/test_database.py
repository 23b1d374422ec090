def test_add_city_and_list_alphabetically(database):
    database.add_city("Paris")
    database.add_city("Amsterdam")
    database.add_city("London")

    assert [c["name"] for c in database.list_cities()] == ["Amsterdam", "London", "Paris"]


def test_add_duplicate_city_returns_none(database):
    first = database.add_city("Paris")
    assert first == {"id": first["id"], "name": "Paris"}

    assert database.add_city("Paris") is None
    assert len(database.list_cities()) == 1


def test_city_names_are_case_sensitive(database):
    assert database.add_city("Paris") is not None
    assert database.add_city("paris") is not None
    assert database.get_city("PARIS") is None


def test_delete_city_cascades_history(database):
    city = database.add_city("Paris")
    database.insert_reading(city["id"], 32.0, "Clear")
    database.insert_alert(city["id"], "High Temperature", "hot")

    assert database.delete_city("Paris") is True
    assert database.delete_city("Paris") is False
    assert database.get_weather_history() == []
    assert database.get_alert_history() == []


def test_history_is_newest_first(database):
    city = database.add_city("Paris")
    database.insert_reading(city["id"], 20.0, "Clear")
    database.insert_reading(city["id"], 21.0, "Clouds")

    readings = database.get_weather_history()
    assert [r["temperature"] for r in readings] == [21.0, 20.0]
    assert readings[0]["city"] == "Paris"
    assert readings[0]["weather_condition"] == "Clouds"
    assert readings[0]["timestamp"]


def test_history_filters_by_city_and_limit(database):
    paris = database.add_city("Paris")
    london = database.add_city("London")
    database.insert_alert(paris["id"], "Rain", "p1")
    database.insert_alert(london["id"], "Rain", "l1")
    database.insert_alert(london["id"], "Rain", "l2")

    assert [a["message"] for a in database.get_alert_history(city="London")] == ["l2", "l1"]
    assert len(database.get_alert_history(limit=1)) == 1


def test_insert_reading_for_unknown_city_fails_quietly(database):
    assert database.insert_reading(999, 20.0, "Clear") is None
    assert database.insert_alert(999, "Rain", "nowhere") is False


def test_data_summary(database):
    city = database.add_city("Paris")
    database.insert_reading(city["id"], 20.0, "Rain")
    database.insert_alert(city["id"], "Rain", "wet")

    assert database.get_data_summary() == {
        "city_count": 1,
        "reading_entries": 1,
        "alert_entries": 1,
    }
