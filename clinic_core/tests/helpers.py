# clinic_core/tests/helpers.py

def scoped(business_unit):
    return {"HTTP_X_BUSINESS_UNIT_ID": str(business_unit.id)}
