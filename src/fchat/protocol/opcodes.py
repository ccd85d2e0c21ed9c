"""Closed sets of chat protocol opcodes."""

from __future__ import annotations

from enum import StrEnum


class ServerCommand(StrEnum):
    """Commands the server sends to the client."""

    ADL = "ADL"  # chatop list
    AOP = "AOP"  # chatop promoted
    BRO = "BRO"  # admin broadcast
    CDS = "CDS"  # channel description
    CHA = "CHA"  # public channel list
    CIU = "CIU"  # channel invite
    CBU = "CBU"  # channel ban
    CKU = "CKU"  # channel kick
    COA = "COA"  # chanop promoted
    COL = "COL"  # chanop list
    CON = "CON"  # connected user count
    COR = "COR"  # chanop removed
    CSO = "CSO"  # channel owner set
    CTU = "CTU"  # channel timeout
    DOP = "DOP"  # chatop removed
    ERR = "ERR"
    FKS = "FKS"  # search results
    FLN = "FLN"  # character offline
    FRL = "FRL"  # friends and bookmarks
    HLO = "HLO"
    ICH = "ICH"  # initial channel data
    IDN = "IDN"  # identification accepted
    IGN = "IGN"  # ignore list
    JCH = "JCH"
    KID = "KID"  # kink data
    LCH = "LCH"
    LIS = "LIS"  # online characters batch
    LRP = "LRP"  # roleplay ad
    MSG = "MSG"
    NLN = "NLN"  # character online
    ORS = "ORS"  # open private rooms
    PIN = "PIN"
    PRD = "PRD"  # profile data
    PRI = "PRI"
    RLL = "RLL"  # dice / bottle
    RMO = "RMO"  # room mode
    RTB = "RTB"  # site notification
    SFC = "SFC"  # staff call
    STA = "STA"
    SYS = "SYS"
    TPN = "TPN"  # typing
    UPT = "UPT"  # uptime stats
    VAR = "VAR"

    @classmethod
    def parse(cls, code: str) -> ServerCommand | None:
        """Return the command for code, or None for an opcode outside the table."""
        try:
            return cls(code)
        except ValueError:
            return None


class ClientCommand(StrEnum):
    """Commands the client sends to the server."""

    ACB = "ACB"
    AOP = "AOP"
    AWC = "AWC"
    BRO = "BRO"
    CBL = "CBL"
    CBU = "CBU"
    CCR = "CCR"
    CDS = "CDS"
    CHA = "CHA"
    CIU = "CIU"
    CKU = "CKU"
    COA = "COA"
    COL = "COL"
    COR = "COR"
    CRC = "CRC"
    CSO = "CSO"
    CTU = "CTU"
    CUB = "CUB"
    DOP = "DOP"
    FKS = "FKS"
    IDN = "IDN"
    IGN = "IGN"
    JCH = "JCH"
    KIC = "KIC"
    KIK = "KIK"
    KIN = "KIN"
    LCH = "LCH"
    LRP = "LRP"
    MSG = "MSG"
    ORS = "ORS"
    PIN = "PIN"
    PRI = "PRI"
    PRO = "PRO"
    RLL = "RLL"
    RMO = "RMO"
    RST = "RST"
    RWD = "RWD"
    SFC = "SFC"
    STA = "STA"
    TMO = "TMO"
    TPN = "TPN"
    UNB = "UNB"
    UPT = "UPT"
