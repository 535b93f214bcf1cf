from decimal import Decimal

from invoicing.money import to_money

GST_TYPE_INTRA_STATE = "CGST+SGST"
GST_TYPE_INTER_STATE = "IGST"
GST_TYPE_CHOICES = [
    (GST_TYPE_INTRA_STATE, "CGST + SGST"),
    (GST_TYPE_INTER_STATE, "IGST"),
]

STATE_CODES = {
    "Jammu and Kashmir": "01",
    "Himachal Pradesh": "02",
    "Punjab": "03",
    "Chandigarh": "04",
    "Uttarakhand": "05",
    "Haryana": "06",
    "Delhi": "07",
    "Rajasthan": "08",
    "Uttar Pradesh": "09",
    "Bihar": "10",
    "Sikkim": "11",
    "Arunachal Pradesh": "12",
    "Nagaland": "13",
    "Manipur": "14",
    "Mizoram": "15",
    "Tripura": "16",
    "Meghalaya": "17",
    "Assam": "18",
    "West Bengal": "19",
    "Jharkhand": "20",
    "Odisha": "21",
    "Chhattisgarh": "22",
    "Madhya Pradesh": "23",
    "Gujarat": "24",
    "Dadra and Nagar Haveli and Daman and Diu": "26",
    "Maharashtra": "27",
    "Karnataka": "29",
    "Goa": "30",
    "Lakshadweep": "31",
    "Kerala": "32",
    "Tamil Nadu": "33",
    "Puducherry": "34",
    "Andaman and Nicobar Islands": "35",
    "Telangana": "36",
    "Andhra Pradesh": "37",
    "Ladakh": "38",
}


def state_code_for(state, default=None):
    if not state:
        return default
    normalized = state.strip().lower()
    for name, code in STATE_CODES.items():
        if name.lower() == normalized:
            return code
    return default


def gst_type_for(buyer_state_code, company_state_code):
    if not buyer_state_code or buyer_state_code == company_state_code:
        return GST_TYPE_INTRA_STATE
    return GST_TYPE_INTER_STATE


def split_hammer_gst(hammer_gst, gst_type):
    """Split the GST backed out of hammer prices into CGST/SGST or IGST."""
    hammer_gst = to_money(hammer_gst)
    if gst_type == GST_TYPE_INTER_STATE:
        return {"type": gst_type, "cgst": Decimal("0.00"), "sgst": Decimal("0.00"), "igst": hammer_gst}

    cgst = to_money(hammer_gst / 2)
    return {"type": GST_TYPE_INTRA_STATE, "cgst": cgst, "sgst": hammer_gst - cgst, "igst": Decimal("0.00")}
