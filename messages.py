HEADER_TEMPLATE = ":calendar: Holidays for {date}"

HOLIDAY_LINE_TEMPLATE = "🎉 {country}: {name}"

LOCAL_NAME_SUFFIX_TEMPLATE = " ({name_local})"

NO_HOLIDAYS_TEMPLATE = ":calendar: No holidays on {date} for {countries}."
