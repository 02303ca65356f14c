"""
Shared fixtures: in-memory guide database, seeded channel registry and
sample feed documents.
"""
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from xmltv_sync.document import parse_document
from xmltv_sync.models import Base, Channel, Service
from xmltv_sync.services.entity_resolver import EntityResolver
from xmltv_sync.services.ingest_types import IngestContext, LineupActions


NOW = datetime(2023, 1, 1, 0, 0, tzinfo=timezone.utc)


TV_DOCUMENT = b"""<?xml version="1.0" encoding="UTF-8"?>
<tv generator-info-name="test">
  <channel id="bbc1.uk">
    <display-name>BBC One</display-name>
    <icon src="http://example.com/bbc1.png"/>
  </channel>
  <channel id="itv.uk">
    <display-name>ITV</display-name>
  </channel>
  <channel id="orphan.uk">
    <display-name>No Such Channel</display-name>
  </channel>
  <!-- comment between nodes -->
  <programme start="20230101120000 +0000" stop="20230101130000 +0000" channel="bbc1.uk">
    <title lang="en">Doctor Who</title>
    <title lang="cy">Doctor Pwy</title>
    <sub-title lang="en">The Day of the Doctor</sub-title>
    <desc lang="en">The Doctors embark on their greatest adventure.</desc>
    <category lang="en">Drama</category>
    <category lang="en">Sci-Fi</category>
    <episode-num system="xmltv_ns">1.0.0/1</episode-num>
    <episode-num system="dd_progid">EP01234567.0005</episode-num>
    <episode-num system="onscreen">S2E1</episode-num>
    <video>
      <quality>HDTV</quality>
      <aspect>16:9</aspect>
    </video>
    <subtitles type="teletext"/>
    <previously-shown/>
  </programme>
  <programme start="20230101130000 +0000" stop="20230101140000 +0000" channel="bbc1.uk">
    <title lang="en">News</title>
    <premiere/>
  </programme>
  <programme start="20230101120000 +0000" stop="20230101130000 +0000" channel="orphan.uk">
    <title lang="en">Dropped</title>
  </programme>
  <unknown-node/>
</tv>
"""


LINEUP_DOCUMENT = b"""<?xml version="1.0" encoding="UTF-8"?>
<xmltv-lineups>
  <xmltv-lineup id="freeview">
    <lineup-entry>
      <preset>101</preset>
      <section>Entertainment</section>
      <station>
        <name>BBC One HD</name>
        <short-name>BBC1</short-name>
        <logo url="http://example.com/bbc1-hd.png"/>
        <video><format>HD</format><aspect-ratio>16:9</aspect-ratio></video>
      </station>
      <dvb-channel>
        <original-network-id>9018</original-network-id>
        <service-id>4164</service-id>
        <lcn>101</lcn>
        <service-name>BBC One HD</service-name>
      </dvb-channel>
    </lineup-entry>
    <lineup-entry>
      <preset>700</preset>
      <section>Radio channels</section>
      <station><name>BBC Radio 4</name></station>
      <dvb-channel><service-id>4164</service-id></dvb-channel>
    </lineup-entry>
    <lineup-entry>
      <preset>2</preset>
      <section>Regional</section>
      <station><name>BBC Two Wales</name></station>
      <dvb-channel><service-id>4287</service-id></dvb-channel>
    </lineup-entry>
    <lineup-entry>
      <preset>103</preset>
      <section>Entertainment</section>
      <station><name>ITV</name><logo url="http://example.com/itv.png"/></station>
      <dvb-channel><service-id>4287</service-id></dvb-channel>
      <stb-channel><stb-preset>103</stb-preset></stb-channel>
    </lineup-entry>
    <lineup-entry>
      <preset>5</preset>
      <section>Entertainment</section>
      <station><name>Unnumbered</name></station>
      <dvb-channel><service-id>n/a</service-id></dvb-channel>
    </lineup-entry>
    <lineup-entry>
      <preset>6</preset>
      <section>Entertainment</section>
      <station><name>Unknown Service</name></station>
      <dvb-channel><service-id>9999</service-id></dvb-channel>
    </lineup-entry>
  </xmltv-lineup>
</xmltv-lineups>
"""


@pytest.fixture
def engine():
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def registry(session):
    """Local channels and services: BBC One (sid 4164), BBC Two (sid 4287), ITV."""
    bbc_one = Channel(name="BBC One", number=1)
    bbc_two = Channel(name="BBC Two", number=2)
    itv = Channel(name="ITV", number=3)
    session.add_all([bbc_one, bbc_two, itv])
    session.flush()

    session.add_all([
        Service(service_id=4164, name="BBC ONE", channel=bbc_one, priority=10),
        Service(service_id=4287, name="BBC TWO", channel=bbc_two, priority=10),
        Service(service_id=4288, name="BBC TWO HD", channel=bbc_two, priority=20),
        Service(service_id=8261, name="ITV1", channel=None),
    ])
    session.flush()
    return {"bbc_one": bbc_one, "bbc_two": bbc_two, "itv": itv}


def make_context(**overrides) -> IngestContext:
    values = dict(
        module_id="xmltv",
        now=NOW,
        local_tz=timezone.utc,
        default_language="eng",
        actions=LineupActions(renumber=True, rename=True, reicon=True),
    )
    values.update(overrides)
    return IngestContext(**values)


@pytest.fixture
def context():
    return make_context()


@pytest.fixture
def resolver(session, context):
    return EntityResolver(session, context)


@pytest.fixture
def tv_document():
    return parse_document(TV_DOCUMENT)


@pytest.fixture
def lineup_document():
    return parse_document(LINEUP_DOCUMENT)
