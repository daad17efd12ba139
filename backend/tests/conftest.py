"""Shared fixtures: in-memory database, API client and sample dumps."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from l2scheme.main import app
from l2scheme.db.database import Base, get_db
from l2scheme.db import models  # noqa: F401


# Setup test database in memory
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Override database dependency for testing."""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """Test client fixture."""
    return TestClient(app)


@pytest.fixture
def db_session():
    """Database session fixture."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


DLINK_CONFIG = """\
#-------------------------------------------------------------------
#                       DGS-3120-24SC Gigabit Ethernet Switch
#                                Configuration
#
#                          Firmware: Build 4.04.017
#        Copyright(C) 2014 D-Link Corporation. All rights reserved.
#-------------------------------------------------------------------

config snmp system_name sw-access-01
config ports 1-4 description Uplink
config ports 5-8 speed 100_full state enable
config ports 9 state disable
create vlan mgmt tag 100
create vlan users tag 200
config vlan default delete 25-28
config vlan mgmt add tagged 25-28
config vlan users add untagged 1-8
config vlan users add tagged 25
"""

OLT_CONFIG = """\
hostname OLT-Center
!
version 10.1.0F build 53305
!
interface GigaEthernet0/1
 description uplink-core
 switchport mode trunk
 switchport trunk vlan-allowed 14,18,100-102
 switchport pvid 14
!
interface TGigaEthernet0/1
 switchport mode trunk
!
interface EPON0/1
 epon bind-onu mac 1234.5678.9abc 5
 epon bind-onu mac aabb.ccdd.eeff 12
 switchport trunk vlan-allowed 14,18
!
interface EPON0/1:5
 description flat-21
 epon sla upstream pir 100000 cir 1000
 epon sla downstream pir 200000 cir 1000
 epon onu port 1 ctc vlan mode tag 14
 switchport port-security
!
interface EPON0/1:12
 description flat-33
 epon onu port 1 ctc vlan mode tag 18
!
"""

DLINK_FDB = """\
Command: show fdb

VLAN ID  MAC Address         Port        Type
------- ----------------- ----------- ------------
1        00-11-22-33-44-55   5          Dynamic
200      00-50-56-AA-BB-01   6          Dynamic
200      00-1B-21-00-00-02   25         Dynamic

Total Entries: 3
"""

DLINK_SWITCH_FDB = """\
VID  VLAN Name                        MAC Address       Port Type
---- -------------------------------- ----------------- ---- ---------------
1    default                          F0-7D-68-11-22-33 CPU  Self
80   80                               00-14-A9-26-5C-31 25   Dynamic
200  office users                     00-1B-21-00-00-02 3    Dynamic

Total Entries: 3
"""

OLT_FDB = """\
OLT-Center#show mac address-table
          Mac Address Table (Total 3)
------------------------------------------------------
Vlan    Mac Address       Type       Ports
14      1234.5678.9abc    DYNAMIC    epon0/1:5
--More--\x1b[K
18      aabb.ccdd.eeff    DYNAMIC    epon0/1:12
14      0011.2233.4455    DYNAMIC    g0/1
"""


@pytest.fixture
def dlink_config():
    return DLINK_CONFIG


@pytest.fixture
def olt_config():
    return OLT_CONFIG


@pytest.fixture
def dlink_fdb():
    return DLINK_FDB


@pytest.fixture
def dlink_switch_fdb():
    return DLINK_SWITCH_FDB


@pytest.fixture
def olt_fdb():
    return OLT_FDB
