"""
OTP INSIGHT TESTS
"""

from fraud_guard.otp_insight import (
    TransactionType, analyze_otp, extract_amount, extract_otp, is_real_sender,
)


def test_otp_near_keyword():
    assert extract_otp("Your OTP is 482913. Valid for 10 minutes.") == "482913"
    assert extract_otp("4821 is your one time password for login") == "4821"


def test_standalone_code_needs_verification_vocabulary():
    assert extract_otp("Use 739201 as your verification code") == "739201"
    assert extract_otp("Order 739201 has shipped") is None


def test_amount_parsing():
    assert extract_amount("Rs. 1,25,000.50 debited") == 125000.5
    assert extract_amount("INR 499 paid") == 499.0
    assert extract_amount("₹ 20 cashback") == 20.0
    assert extract_amount("no money here") is None


def test_payment_out_transaction():
    insight = analyze_otp("OTP 551234 for payment of Rs 2,499 at Amazon. Do not share.")
    assert insight.transaction_type == TransactionType.PAYMENT_OUT
    assert insight.otp_code == "551234"
    assert insight.amount == 2499.0
    assert insight.merchant == "Amazon"
    assert insight.is_sensitive


def test_credit_notice_is_payment_in_and_not_sensitive():
    insight = analyze_otp("Rs 5,000 credited to your account")
    assert insight.transaction_type == TransactionType.PAYMENT_IN
    assert not insight.is_sensitive


def test_merchant_needs_whole_word():
    assert analyze_otp("Traffic violation notice").merchant is None


def test_real_sender_detection():
    assert is_real_sender("SBIINB")
    assert not is_real_sender("MANUAL_INPUT")
    assert not is_real_sender("qr_code")
    assert not is_real_sender(None)
    assert not is_real_sender("  ")
