import streamlit as st
import pandas as pd
from config import Settings
from errors import CalendarError
from feed import fetch_feed, parse_feed
from helpers import build_events, extract_matches, generate_ics, slugify

settings = Settings.from_env()

# ---------- PAGE CONFIG ----------
st.set_page_config(page_title="Floorball Feed to Calendar", layout="wide")

# ---------- TITLE ----------
st.markdown(f"<h1 style='text-align: center; color: #007cba;'>🏑 {settings.calendar_name} Floorball Feed → iCalendar (.ics)</h1>", unsafe_allow_html=True)

# ---------- INSTRUCTIONS ----------
st.markdown("""
### How to Use
1️⃣ Upload a saved XML feed file, or fetch the configured feed.
2️⃣ Check the team name in the sidebar.
3️⃣ Scroll down to preview the matches and download your `.ics` calendar file.
""")

st.divider()

# ---------- USER SETTINGS ----------
team_name = st.sidebar.text_input("Team name (exact, as in the feed):", value=settings.team_name).strip()

# ---------- STREAMLIT APP ----------
st.markdown("### 📂 Upload a Feed OR Fetch It")

uploaded_file = st.file_uploader("Upload the XML feed", type=["xml"])
fetch_clicked = st.button("🌐 Fetch configured feed", disabled=not settings.feed_url)

xml_text = ""
if uploaded_file:
    xml_text = uploaded_file.read().decode("utf-8")
elif fetch_clicked:
    try:
        xml_text = fetch_feed(settings)
    except CalendarError as e:
        st.error(f"❌ Error fetching feed: {str(e)}")

if xml_text:
    try:
        matches = extract_matches(parse_feed(xml_text), team_name)
    except CalendarError as e:
        st.error(f"❌ Error parsing feed: {str(e)}")
        matches = []

    if matches:
        st.success(f"✅ Found {len(matches)} matches!")

        events = build_events(matches, settings)
        df = pd.DataFrame(
            [(e.title, e.start.strftime("%Y-%m-%d"), e.start.strftime("%H:%M"), e.location) for e in events],
            columns=["Match", "Date", "Start", "Location"],
        )
        st.dataframe(df)

        first = events[0]
        st.markdown(f"""
        ### 📅 First Match Preview
        **Title:** {first.title}
        **Start:** {first.start.strftime("%Y-%m-%d %H:%M")} ({settings.timezone})
        **Duration:** {first.duration_minutes} min
        **Location:** {first.location}
        """)

        try:
            ics_data = generate_ics(matches, settings).encode("utf-8")
        except CalendarError as e:
            st.error(f"❌ Error generating ICS file: {str(e)}")
            ics_data = None

        if ics_data:
            st.download_button(
                label="📥 Download ICS File",
                data=ics_data,
                file_name=f"{slugify(settings.calendar_name)}-calendar.ics",
                mime="text/calendar",
                type="primary"
            )
    else:
        st.error(f"❌ No matches of {team_name} found in the feed.")
else:
    st.info("⬆️ Upload a feed file or fetch the configured feed to continue.")
